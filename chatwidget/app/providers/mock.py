"""Mock responder.

Produces templated Dutch replies in the tenant's persona without calling
any external model. Used for development, demos and tests.
"""

import asyncio
import random
import re
from typing import AsyncGenerator, List, Optional

from chatwidget.app.providers.base import BaseResponder
from chatwidget.app.services.tenants import Persona, TenantConfig

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

GREETING_KEYWORDS = ("hallo", "hi", "hey", "goedemorgen", "goedemiddag", "goedenavond")
SERVICE_KEYWORDS = ("web development", "services", "diensten", "wat zijn jullie", "aanbod")
PRICING_KEYWORDS = ("prijzen", "packages", "kosten", "tarieven", "prijs", "offerte")
SUPPORT_KEYWORDS = ("ondersteuning", "support", "help", "hulp", "probleem")

SERVICE_REPLIES = {
    "techcorp": (
        "TechCorp Solutions biedt professionele web development diensten, inclusief "
        "React/Next.js applicaties, Node.js backend services, database design en cloud "
        "deployment. We zijn gespecialiseerd in moderne technologieën en schaalbare oplossingen."
    ),
    "retailmax": (
        "RetailMax is uw betrouwbare partner voor elektronica en consumentengoederen. "
        "We bieden een breed assortiment smartphones, laptops, audio/video apparatuur en "
        "gaming accessoires met uitstekende klantenservice."
    ),
}

PRICING_REPLIES = {
    "techcorp": (
        "Onze tarieven variëren van €2,500 tot €10,000 per maand afhankelijk van het pakket. "
        "Het Starter Package begint bij €2,500, Professional bij €5,000 en Enterprise bij €10,000. "
        "Neem contact op voor een offerte op maat."
    ),
    "retailmax": (
        "Onze prijzen zijn competitief en variëren per productcategorie. "
        "We bieden regelmatig kortingen en speciale aanbiedingen. "
        "Bekijk onze website voor actuele prijzen of vraag naar een persoonlijke offerte."
    ),
}

SUPPORT_REPLIES = {
    "techcorp": (
        "We bieden 24/7 ondersteuning voor al onze producten. "
        "Bug fixes worden binnen 24 uur opgelost, feature requests binnen 1 week behandeld."
    ),
    "retailmax": (
        "Onze klantenservice is beschikbaar van maandag tot vrijdag 9:00-18:00 en zaterdag 10:00-16:00. "
        "We bieden ook live chat op onze website."
    ),
}

FALLBACK_REPLIES = [
    "Dat is een interessante vraag. Laat me daar even over nadenken.",
    "Ik begrijp je vraag. Ik kan je helpen met informatie over ons bedrijf.",
    "Dat is een veelgestelde vraag. Vertel me gerust wat meer.",
]


def split_sentences(text: str) -> List[str]:
    """Split a reply into sentences, keeping their punctuation."""
    return [s for s in SENTENCE_SPLIT.split(text.strip()) if s.strip()]


class MockResponder(BaseResponder):
    """Responder that returns templated persona replies.

    Features:
    - Keyword routing: greeting, services, pricing, support, default
    - One sentence per token, like a model streaming sentence by sentence
    - Optional initial latency and failure rate for testing error handling
    """

    def __init__(
        self,
        initial_latency: float = 0.0,
        failure_rate: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the mock responder.

        Args:
            initial_latency: Delay before the first token in seconds
            failure_rate: Probability of raising mid-stream (0-1)
            rng: Random source, injectable for deterministic tests
        """
        self.initial_latency = initial_latency
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()

    def generate_text(self, persona: Persona, message: str) -> str:
        """Pick the reply text for a message in the given persona."""
        lower = message.lower()

        if any(kw in lower for kw in GREETING_KEYWORDS):
            return persona.welcome_message
        if any(kw in lower for kw in SERVICE_KEYWORDS) and persona.id in SERVICE_REPLIES:
            return SERVICE_REPLIES[persona.id]
        if any(kw in lower for kw in PRICING_KEYWORDS) and persona.id in PRICING_REPLIES:
            return PRICING_REPLIES[persona.id]
        if any(kw in lower for kw in SUPPORT_KEYWORDS) and persona.id in SUPPORT_REPLIES:
            return SUPPORT_REPLIES[persona.id]

        if persona.personality:
            return f"{persona.name}: {persona.personality[0]}. Waarmee kan ik je helpen?"
        return self._rng.choice(FALLBACK_REPLIES)

    async def stream_reply(self, tenant: TenantConfig, message: str) -> AsyncGenerator[str, None]:
        if self.initial_latency > 0:
            await asyncio.sleep(self.initial_latency)

        sentences = split_sentences(self.generate_text(tenant.persona, message))
        for index, sentence in enumerate(sentences):
            if index > 0 and self._rng.random() < self.failure_rate:
                raise RuntimeError("Simulated responder failure")
            yield sentence + " "
