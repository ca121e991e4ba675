"""Per-user question history and duplicate detection.

Short-term memory model:
    History lives in an injectable `KeyValueStore` keyed by user id (process-local
    `InMemoryStore` by default). Each user keeps the last `limit` questions, the
    tones they received (unique, in first-use order) and the categories seen.

Duplicate rule:
    A candidate duplicates a prior question when the normalized (lowercased,
    trimmed) texts are equal, or when word-overlap similarity
    `|common words| / max(|words1|, |words2|)` exceeds the threshold.

Concurrency:
    Individual store writes are atomic. The duplicate check and the later append
    are separated by awaits in the question loop, so two concurrent requests for
    the same user can both accept near-identical questions.
"""

import logging

from whyforge.core.types import QuestionResult, UserHistory, utcnow
from whyforge.offline.store import InMemoryStore, KeyValueStore


logger = logging.getLogger(__name__)


def normalize_question(text: str) -> str:
    return (text or "").strip().lower()


def word_overlap_similarity(first: str, second: str) -> float:
    words1 = first.split()
    words2 = second.split()
    if not words1 or not words2:
        return 0.0
    common = [word for word in words1 if word in words2]
    return len(common) / max(len(words1), len(words2))


def is_duplicate_question(candidate: str, previous_questions: list[str], threshold: float) -> bool:
    normalized = normalize_question(candidate)
    for previous in previous_questions:
        normalized_previous = normalize_question(previous)
        if normalized == normalized_previous:
            return True
        if word_overlap_similarity(normalized, normalized_previous) > threshold:
            return True
    return False


class UserHistoryStore:
    def __init__(self, store: KeyValueStore | None = None, limit: int = 50) -> None:
        self._store = store if store is not None else InMemoryStore()
        self.limit = limit

    def get(self, user_id: str) -> UserHistory | None:
        return self._store.get(user_id)

    def evict(self, user_id: str) -> UserHistory | None:
        return self._store.evict(user_id)

    def record(self, user_id: str, result: QuestionResult) -> UserHistory:
        """Append a generated question; oldest questions beyond `limit` are dropped."""
        history = self._store.get(user_id) or UserHistory(user_id=user_id)

        questions = history.previous_questions + [result.question]
        history.previous_questions = questions[-self.limit:]

        if all(tone.name != result.tone_applied.name for tone in history.preferred_tones):
            history.preferred_tones.append(result.tone_applied)

        if result.category not in history.categories:
            history.categories.append(result.category)

        history.last_updated = utcnow()
        self._store.put(user_id, history)
        return history

    def stats(self, user_id: str) -> dict | None:
        history = self.get(user_id)
        if history is None:
            return None
        return {
            "total_questions": len(history.previous_questions),
            "favorite_wildcards": [tone.name for tone in history.preferred_tones[:3]],
            "categories": list(history.categories),
            "last_updated": history.last_updated.isoformat(),
        }
