"""Offline cache and rule-based question generator for degraded-mode service.

Purpose of this abstraction:
    Keep a bounded, expiring collection of previously generated questions and
    answers so the question pipeline can still serve something when the completion
    provider is unreachable.

Collections:
    Two `BoundedExpiringStore`s (questions, answers), each capped at
    `size_limit` (100) with a `expiry_days` (7) lifetime. Answers carry a
    non-owning `question_id` back-reference used by `get_cached_answer`.

Cold start:
    When nothing is loaded from a snapshot, the cache is seeded with a small set of
    pre-authored popular questions and answers so it is never empty.

Persistence:
    An optional `CacheSnapshot` collaborator is loaded at construction and saved
    after every mutation. Without one, load/save are no-ops.
"""

import json
import logging
import os
import random
import re
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Protocol

from whyforge.core.settings import OfflineSettings
from whyforge.core.types import (
    OFFLINE_FALLBACK_CATEGORY,
    AnswerResult,
    CachedAnswer,
    CachedQuestion,
    QuestionResult,
    utcnow,
)
from whyforge.offline.store import BoundedExpiringStore
from whyforge.prompting.tone_catalog import WILDCARD_TONES


logger = logging.getLogger(__name__)


OFFLINE_HOOK_LINE = "An intriguing question to spark your curiosity"
OFFLINE_DEFAULT_QUESTION = "Why does this phenomenon occur?"

# (pattern, question template, category); first match wins.
OFFLINE_PATTERNS = [
    (re.compile(r"cat|feline|pet", re.IGNORECASE), "Why do cats exhibit this behavior?", "biological"),
    (re.compile(r"plant|flower|tree", re.IGNORECASE), "Why do plants develop this characteristic?", "biological"),
    (re.compile(r"human|people|person", re.IGNORECASE), "Why do humans experience this phenomenon?", "psychological"),
    (re.compile(r"water|ocean|sea", re.IGNORECASE), "Why does water behave this way?", "physical"),
    (re.compile(r"sky|cloud|weather", re.IGNORECASE), "Why do we observe this in the atmosphere?", "physical"),
]


# =========================================================
# SEED CONTENT
# =========================================================

POPULAR_QUESTIONS = [
    ("offline-1", "Why do cats purr when they're content?", "biological", 6,
     "The secret vibration that reveals a cat's emotional state"),
    ("offline-2", "Why do humans find certain sounds soothing?", "psychological", 7,
     "The neurological mystery behind auditory comfort"),
    ("offline-3", "Why do plants grow towards light?", "biological", 5,
     "The silent chase every houseplant is running"),
    ("offline-4", "Why do stars shine in the night sky?", "physical", 8,
     "A furnace millions of miles away, still glowing for you"),
    ("offline-5", "Why do people laugh when they're happy?", "psychological", 6,
     "The oldest social signal we still can't suppress"),
]

POPULAR_ANSWERS = [
    ("answer-1", "offline-1",
     "Cats purr through a fascinating mechanism involving their laryngeal muscles and neural "
     "oscillators. When content, their brain sends rapid signals to throat muscles, creating "
     "vibrations at 20-50 Hz. These vibrations don't just communicate happiness - they actually "
     "promote bone healing and reduce pain, which is why cats purr when injured too!",
     ["Feline Biology Research", "Veterinary Science Journal"]),
    ("answer-2", "offline-2",
     "Humans find certain sounds soothing due to evolutionary wiring and neurochemistry. Our "
     "brains respond positively to sounds that historically indicated safety - gentle water, soft "
     "wind, rhythmic patterns like a heartbeat. The auditory cortex processes these sounds and "
     "triggers serotonin and dopamine release while reducing cortisol, creating physiological "
     "relaxation.",
     ["Neuroscience Research", "Evolutionary Psychology"]),
    ("answer-3", "offline-3",
     "Plants grow towards light through phototropism, a response controlled by auxin hormones. "
     "When light hits one side of a plant, auxin concentrates on the shadowed side, causing those "
     "cells to elongate faster. This creates the bending motion toward light. It's nature's way "
     "of ensuring plants maximize their energy capture for survival!",
     ["Plant Biology Textbook", "Botanical Research"]),
]


# =========================================================
# PERSISTENCE
# =========================================================

class CacheSnapshot(Protocol):
    def load(self) -> tuple[list[CachedQuestion], list[CachedAnswer]]:
        ...

    def save(self, questions: list[CachedQuestion], answers: list[CachedAnswer]) -> None:
        ...


class JsonCacheSnapshot:
    """Mirror the cache to a JSON file so a restart keeps non-expired entries.

    Unreadable or corrupt snapshots are logged and treated as empty.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()

    def load(self) -> tuple[list[CachedQuestion], list[CachedAnswer]]:
        if not os.path.exists(self.path):
            return [], []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            questions = [CachedQuestion.from_dict(item) for item in data.get("questions", [])]
            answers = [CachedAnswer.from_dict(item) for item in data.get("answers", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError):
            logger.exception("Failed to load offline cache snapshot from %s", self.path)
            return [], []

        return questions, answers

    def save(self, questions: list[CachedQuestion], answers: list[CachedAnswer]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        payload = {
            "saved_at": utcnow().isoformat(),
            "questions": [q.to_dict() for q in questions],
            "answers": [a.to_dict() for a in answers],
        }

        tmp_path = f"{self.path}.tmp"
        with self._lock:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)


# =========================================================
# CACHE
# =========================================================

class OfflineCache:
    """Bounded, expiring question/answer cache plus offline question generator."""

    def __init__(
        self,
        settings: OfflineSettings | None = None,
        snapshot: CacheSnapshot | None = None,
        clock: Callable[[], datetime] = utcnow,
        connectivity_check: Callable[[], bool] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or OfflineSettings()
        self._snapshot = snapshot
        self._clock = clock
        self._connectivity_check = connectivity_check
        self._rng = rng or random.Random()

        ttl = timedelta(days=self.settings.expiry_days)
        self._questions = BoundedExpiringStore(
            self.settings.size_limit, ttl, lambda q: q.cached_at, clock
        )
        self._answers = BoundedExpiringStore(
            self.settings.size_limit, ttl, lambda a: a.cached_at, clock
        )

        self._load()
        if len(self._questions) == 0:
            self.cache_popular_questions()

    # -----------------------------------------------------
    # Connectivity
    # -----------------------------------------------------

    def is_online(self) -> bool:
        if self.settings.force_offline:
            return False
        if self._connectivity_check is None:
            return True
        return bool(self._connectivity_check())

    # -----------------------------------------------------
    # Seeding
    # -----------------------------------------------------

    def cache_popular_questions(self) -> None:
        """Replace cache contents with the pre-authored popular Q&A pairs."""
        now = self._clock()
        tones = list(WILDCARD_TONES)

        questions = [
            CachedQuestion(
                id=qid,
                question=text,
                complexity_score=complexity,
                category=category,
                hook_line=hook,
                tone_applied=tones[i % len(tones)],
                generated_at=now,
                cached_at=now,
            )
            for i, (qid, text, category, complexity, hook) in enumerate(POPULAR_QUESTIONS)
        ]
        answers = [
            CachedAnswer(
                id=aid,
                question_id=qid,
                answer=text,
                sources=list(sources),
                confidence_score=85,
                tone_applied=tones[i % len(tones)],
                generated_at=now,
                cached_at=now,
            )
            for i, (aid, qid, text, sources) in enumerate(POPULAR_ANSWERS)
        ]

        self._questions.clear()
        self._answers.clear()
        self._questions.put_many((q.id, q) for q in questions)
        self._answers.put_many((a.id, a) for a in answers)
        self._save()

    # -----------------------------------------------------
    # Read paths (never return expired entries)
    # -----------------------------------------------------

    def get_cached_questions(self) -> list[CachedQuestion]:
        return self._questions.values()

    def get_cached_question(self, question_id: str) -> CachedQuestion | None:
        return self._questions.get(question_id)

    def get_random_cached_question(self) -> CachedQuestion | None:
        valid = self.get_cached_questions()
        if not valid:
            return None
        return self._rng.choice(valid)

    def get_cached_answer(self, question_id: str) -> CachedAnswer | None:
        """Reverse lookup of the newest non-expired answer for a question id."""
        matches = [a for a in self._answers.values() if a.question_id == question_id]
        if not matches:
            return None
        return max(matches, key=lambda a: a.cached_at)

    # -----------------------------------------------------
    # Write paths
    # -----------------------------------------------------

    def cache_question_answer(
        self,
        question: QuestionResult,
        answer: AnswerResult | None = None,
    ) -> CachedQuestion:
        """Store an online-generated question (and optional answer).

        Returns:
            The stored `CachedQuestion`; its `id` is the handle for later answers.
        """
        now = self._clock()
        cached = CachedQuestion(
            id=f"cached-{uuid.uuid4().hex}",
            question=question.question,
            complexity_score=question.complexity_score,
            category=question.category,
            hook_line=question.hook_line,
            tone_applied=question.tone_applied,
            generated_at=question.generated_at,
            cached_at=now,
            user_id=question.user_id,
        )
        self._questions.put(cached.id, cached)

        if answer is not None:
            self._store_answer(cached.id, answer, now)

        self._save()
        return cached

    def cache_answer(self, question_id: str, answer: AnswerResult) -> CachedAnswer:
        cached = self._store_answer(question_id, answer, self._clock())
        self._save()
        return cached

    def clear_expired(self) -> int:
        removed = self._questions.purge_expired() + self._answers.purge_expired()
        if removed:
            logger.info("Cleared %d expired offline cache entries", removed)
        self._save()
        return removed

    def stats(self) -> dict:
        return {
            "questions": len(self._questions),
            "answers": len(self._answers),
            "expired_items": self._questions.expired_count() + self._answers.expired_count(),
        }

    # -----------------------------------------------------
    # Rule-based generator
    # -----------------------------------------------------

    def generate_offline_question(self, user_input: str) -> QuestionResult:
        """Build a question from simple keyword rules without any provider call."""
        question = OFFLINE_DEFAULT_QUESTION
        category = OFFLINE_FALLBACK_CATEGORY

        for pattern, template, pattern_category in OFFLINE_PATTERNS:
            if pattern.search(user_input or ""):
                question = template
                category = pattern_category
                break

        return QuestionResult(
            question=question,
            complexity_score=self._rng.randint(4, 8),
            category=category,
            hook_line=OFFLINE_HOOK_LINE,
            tone_applied=self._rng.choice(WILDCARD_TONES),
        )

    # -----------------------------------------------------
    # Internals
    # -----------------------------------------------------

    def _store_answer(self, question_id: str, answer: AnswerResult, now: datetime) -> CachedAnswer:
        cached = CachedAnswer(
            id=f"answer-{uuid.uuid4().hex}",
            question_id=question_id,
            answer=answer.answer,
            sources=list(answer.sources),
            confidence_score=answer.confidence_score,
            tone_applied=answer.tone_applied,
            generated_at=answer.generated_at,
            cached_at=now,
        )
        self._answers.put(cached.id, cached)
        return cached

    def _load(self) -> None:
        if self._snapshot is None:
            return
        questions, answers = self._snapshot.load()
        self._questions.put_many((q.id, q) for q in questions if not self._questions.is_expired(q))
        self._answers.put_many((a.id, a) for a in answers if not self._answers.is_expired(a))
        logger.info(
            "Loaded offline cache snapshot: questions=%d answers=%d",
            len(self._questions),
            len(self._answers),
        )

    def _save(self) -> None:
        if self._snapshot is None:
            return
        try:
            self._snapshot.save(self._questions.all_values(), self._answers.all_values())
        except OSError:
            logger.exception("Failed to save offline cache snapshot")
