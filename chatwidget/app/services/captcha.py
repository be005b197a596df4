"""In-memory captcha challenges.

Challenges are short arithmetic or Dutch trivia questions. The expected
answer stays on the server; callers only ever see the challenge id and
the question text.
"""

import random
import secrets
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from chatwidget.app.core.logging import get_logger

logger = get_logger(__name__)

MATH_CHALLENGE_RATIO = 0.7

TRIVIA_QUESTIONS: List[Tuple[str, str]] = [
    ("Wat is de hoofdstad van Nederland?", "amsterdam"),
    ("Hoeveel dagen heeft een week?", "7"),
    ("Welke kleur krijg je als je rood en blauw mengt?", "paars"),
    ("Wat is 2 + 2?", "4"),
    ('Welk dier zegt "miauw"?', "kat"),
    ("Hoeveel maanden heeft een jaar?", "12"),
    ("Welke planeet staat het dichtst bij de zon?", "mercurius"),
    ("Wat is de grootste oceaan?", "stille oceaan"),
]


class CaptchaFailure(str, Enum):
    """Why a verification did not succeed."""
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    INCORRECT = "incorrect"
    EXHAUSTED = "exhausted"


@dataclass
class CaptchaChallenge:
    id: str
    question: str
    answer: str
    created_at: float
    expires_at: float
    attempts: int = 0


@dataclass
class CaptchaResult:
    """Outcome of generate or verify; failures are values, not exceptions."""
    success: bool
    challenge_id: Optional[str] = None
    question: Optional[str] = None
    error: Optional[str] = None
    failure: Optional[CaptchaFailure] = None
    attempts_remaining: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.challenge_id is not None:
            data["challengeId"] = self.challenge_id
        if self.question is not None:
            data["question"] = self.question
        if self.error is not None:
            data["error"] = self.error
        if self.failure is not None:
            data["reason"] = self.failure.value
        if self.attempts_remaining is not None:
            data["attemptsRemaining"] = self.attempts_remaining
        return data


def normalize_answer(answer: str) -> str:
    return answer.strip().lower()


class CaptchaService:
    """Issues and verifies challenges, all state in memory.

    Per challenge: issued, then verified, retried until exhausted, or
    expired. Every terminal state deletes the entry.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_attempts: int = 3,
        max_active: int = 10_000,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.max_active = max_active
        self._clock = clock
        self._rng = rng or random.Random()
        self._challenges: Dict[str, CaptchaChallenge] = {}
        self._total_generated = 0
        self._successes = 0
        self._failures = 0
        self._lock = threading.Lock()

    def generate_challenge(self) -> CaptchaResult:
        """Create a new challenge and return its id and question."""
        if self._rng.random() < MATH_CHALLENGE_RATIO:
            question, answer = self._math_question()
        else:
            question, answer = self._rng.choice(TRIVIA_QUESTIONS)

        with self._lock:
            now = self._clock()
            self._cleanup_expired(now)
            self._evict_oldest()
            challenge_id = secrets.token_urlsafe(16)
            self._challenges[challenge_id] = CaptchaChallenge(
                id=challenge_id,
                question=question,
                answer=normalize_answer(answer),
                created_at=now,
                expires_at=now + self.ttl_seconds,
            )
            self._total_generated += 1

        return CaptchaResult(success=True, challenge_id=challenge_id, question=question)

    def verify_challenge(self, challenge_id: str, answer: str) -> CaptchaResult:
        """Check an answer.

        Args:
            challenge_id: Id returned by generate_challenge
            answer: User supplied answer, compared case and whitespace insensitive

        Returns:
            CaptchaResult; on failure ``failure`` tells not found, expired,
            incorrect (retry allowed) or exhausted apart
        """
        with self._lock:
            now = self._clock()
            challenge = self._challenges.get(challenge_id)

            if challenge is None:
                return CaptchaResult(
                    success=False,
                    error="Challenge not found or expired",
                    failure=CaptchaFailure.NOT_FOUND,
                )

            if now > challenge.expires_at:
                del self._challenges[challenge_id]
                self._failures += 1
                logger.info(f"Captcha challenge expired: {challenge_id}")
                return CaptchaResult(
                    success=False,
                    error="Challenge expired",
                    failure=CaptchaFailure.EXPIRED,
                )

            challenge.attempts += 1

            if normalize_answer(answer) == challenge.answer:
                del self._challenges[challenge_id]
                self._successes += 1
                return CaptchaResult(success=True)

            self._failures += 1
            if challenge.attempts >= self.max_attempts:
                del self._challenges[challenge_id]
                logger.warning(f"Captcha challenge exhausted: {challenge_id}")
                return CaptchaResult(
                    success=False,
                    error="Maximum attempts exceeded",
                    failure=CaptchaFailure.EXHAUSTED,
                    attempts_remaining=0,
                )

            remaining = self.max_attempts - challenge.attempts
            return CaptchaResult(
                success=False,
                error=f"Incorrect answer. {remaining} attempts remaining.",
                failure=CaptchaFailure.INCORRECT,
                attempts_remaining=remaining,
            )

    def cleanup_expired(self) -> int:
        """Drop expired challenges. Returns how many were removed."""
        with self._lock:
            return self._cleanup_expired(self._clock())

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            self._cleanup_expired(self._clock())
            verified = self._successes + self._failures
            return {
                "activeChallenges": len(self._challenges),
                "totalGenerated": self._total_generated,
                "successRate": self._successes / verified if verified else 0.0,
            }

    def reset(self) -> None:
        """Clear all challenges and counters."""
        with self._lock:
            self._challenges.clear()
            self._total_generated = 0
            self._successes = 0
            self._failures = 0

    def _evict_oldest(self) -> None:
        # Dicts keep insertion order, so the first keys are the oldest challenges
        overflow = len(self._challenges) - self.max_active + 1
        if overflow <= 0:
            return
        for cid in list(self._challenges)[:overflow]:
            del self._challenges[cid]
        logger.warning(f"Captcha store full, evicted {overflow} oldest challenge(s)")

    def _cleanup_expired(self, now: float) -> int:
        expired = [cid for cid, c in self._challenges.items() if now > c.expires_at]
        for cid in expired:
            del self._challenges[cid]
        return len(expired)

    def _math_question(self) -> Tuple[str, str]:
        operation = self._rng.choice(["+", "-", "*"])
        if operation == "+":
            a, b = self._rng.randint(1, 50), self._rng.randint(1, 50)
            answer = a + b
        elif operation == "-":
            a, b = self._rng.randint(25, 74), self._rng.randint(1, 25)
            answer = a - b
        else:
            a, b = self._rng.randint(1, 10), self._rng.randint(1, 10)
            answer = a * b
        return f"Wat is {a} {operation} {b}?", str(answer)
