"""Tests for the mock responder."""

import random

import pytest

from chatwidget.app.providers.mock import (
    PRICING_REPLIES,
    SUPPORT_REPLIES,
    MockResponder,
    split_sentences,
)
from chatwidget.app.services.tenants import RETAILMAX_PERSONA, TECHCORP_PERSONA, TenantRegistry


@pytest.fixture
def responder():
    return MockResponder(rng=random.Random(1))


class TestGenerateText:
    """Tests for keyword routing."""

    def test_greeting(self, responder):
        assert responder.generate_text(TECHCORP_PERSONA, "Hallo daar") == TECHCORP_PERSONA.welcome_message

    def test_pricing(self, responder):
        assert responder.generate_text(RETAILMAX_PERSONA, "Wat zijn de kosten") == PRICING_REPLIES["retailmax"]

    def test_support(self, responder):
        assert responder.generate_text(TECHCORP_PERSONA, "Ik heb een probleem") == SUPPORT_REPLIES["techcorp"]

    def test_default_uses_personality(self, responder):
        text = responder.generate_text(TECHCORP_PERSONA, "Vertel eens iets")

        assert text == "TechCorp Solutions AI Assistant: Professioneel en technisch onderlegd. Waarmee kan ik je helpen?"


class TestStreamReply:
    """Tests for token streaming."""

    @pytest.mark.asyncio
    async def test_one_token_per_sentence(self, responder):
        tenant = TenantRegistry().require("demo-tenant")

        tokens = [t async for t in responder.stream_reply(tenant, "Hallo")]

        assert tokens == [s + " " for s in split_sentences(TECHCORP_PERSONA.welcome_message)]
        assert "".join(tokens).strip() == TECHCORP_PERSONA.welcome_message

    @pytest.mark.asyncio
    async def test_failure_after_first_token(self):
        responder = MockResponder(failure_rate=1.0)
        tenant = TenantRegistry().require("demo-tenant")
        tokens = []

        with pytest.raises(RuntimeError):
            async for token in responder.stream_reply(tenant, "Hallo"):
                tokens.append(token)

        assert len(tokens) == 1

    @pytest.mark.asyncio
    async def test_health_check(self, responder):
        assert await responder.health_check() is True


def test_split_sentences():
    assert split_sentences("Eén. Twee? Drie!  Vier") == ["Eén.", "Twee?", "Drie!", "Vier"]
