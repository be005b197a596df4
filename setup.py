from setuptools import setup, find_packages

setup(
    name="chatwidget-gateway",
    version="0.1.0",
    packages=find_packages(include=["chatwidget", "chatwidget.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.37",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "httpx>=0.27",
        "uvicorn>=0.29",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
