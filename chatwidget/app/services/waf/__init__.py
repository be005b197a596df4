"""Web application firewall package.

- models.py: WAFRule and WAFVerdict
- rules.py: Built-in rule set
- service.py: Main service class
"""

from chatwidget.app.services.waf.models import WAFRule, WAFVerdict
from chatwidget.app.services.waf.rules import DEFAULT_RULE_DEFINITIONS, default_rules
from chatwidget.app.services.waf.service import WAFService, build_inspection_text

__all__ = [
    "WAFRule",
    "WAFVerdict",
    "DEFAULT_RULE_DEFINITIONS",
    "default_rules",
    "WAFService",
    "build_inspection_text",
]
