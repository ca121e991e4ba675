"""Tone ("wildcard") catalog and prompt modifiers.

Architectural role:
    Holds the fixed set of tone variants, selects them by name or at random, and
    appends tone and user-context blocks to prompts built by `prompt_builder`.

Compatibility rules:
    `compatibility` reports tone/category pairs that tend to read poorly. The
    pipelines do not consult it; it is exposed for callers that want to filter.

Determinism:
    Random selection uses an injectable `random.Random`; everything else is
    deterministic. Tone variants are frozen and shared.
"""

import logging
import random

from whyforge.core.types import Archetype, ToneVariant, UserContext
from whyforge.prompting.prompt_builder import QUESTION_ARCHETYPES


logger = logging.getLogger(__name__)


WILDCARD_TONES = (
    ToneVariant(
        name="funny",
        tone_instruction="Use humor similar to Douglas Adams - witty, absurd, but scientifically accurate",
        description="Entertaining and humorous approach with clever wordplay",
    ),
    ToneVariant(
        name="scientific",
        tone_instruction="Focus on quantum mechanics, biology, or physics with academic rigor",
        description="Technical and precise with scientific terminology",
    ),
    ToneVariant(
        name="poetic",
        tone_instruction="Frame causality in terms of human emotion and cosmic scale",
        description="Lyrical and metaphorical with emotional resonance",
    ),
    ToneVariant(
        name="childlike",
        tone_instruction="Use simple language with boundless curiosity and wonder",
        description="Simple, wonder-filled questions that spark imagination",
    ),
    ToneVariant(
        name="philosophical",
        tone_instruction="Deep existential questioning about meaning and purpose",
        description="Profound questions about existence and meaning",
    ),
)

TONE_NAMES = tuple(tone.name for tone in WILDCARD_TONES)

# Typical complexity band per tone, used by `by_complexity_range`.
TONE_COMPLEXITY = {
    "childlike": (1, 5),
    "funny": (2, 7),
    "scientific": (5, 10),
    "poetic": (3, 8),
    "philosophical": (6, 10),
}

INCOMPATIBLE_COMBINATIONS = {
    ("childlike", "philosophical"),
    ("funny", "philosophical"),
}


class ToneCatalog:
    """Selection and prompt application for tone variants and archetypes."""

    def __init__(
        self,
        tones: tuple[ToneVariant, ...] = WILDCARD_TONES,
        archetypes: tuple[Archetype, ...] = QUESTION_ARCHETYPES,
        rng: random.Random | None = None,
    ) -> None:
        self._tones = tuple(tones)
        self._by_name = {tone.name.lower(): tone for tone in self._tones}
        self._archetypes = tuple(archetypes)
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._tones)

    def all_tones(self) -> list[ToneVariant]:
        return list(self._tones)

    def random_tone(self) -> ToneVariant:
        return self._rng.choice(self._tones)

    def random_archetype(self) -> Archetype:
        return self._rng.choice(self._archetypes)

    def by_name(self, name: str | None) -> ToneVariant:
        """Return the named tone, or a random one when the name is unknown."""
        tone = self._by_name.get((name or "").strip().lower())
        if tone is None:
            fallback = self.random_tone()
            logger.warning("Wildcard '%s' not found, using random wildcard '%s'", name, fallback.name)
            return fallback
        return tone

    def apply_to_prompt(self, prompt: str, tone: ToneVariant) -> str:
        return (
            prompt
            + f"\n\nTONE MODIFIER: {tone.tone_instruction}\n\n"
            + "Maintain the \"Why\" constraint while applying this tone."
        )

    def inject_user_context(self, prompt: str, user_context: UserContext | dict | None) -> str:
        """Append age-banded phrasing guidance and interests to a prompt.

        Age bands: under 12 gets simplified language, over 65 gets respectful,
        experience-aware framing, anything else is stated verbatim.
        """
        if not user_context:
            return prompt

        if isinstance(user_context, dict):
            user_context = UserContext(
                age=user_context.get("age"),
                interests=list(user_context.get("interests") or []),
            )

        lines = []

        if user_context.age:
            if user_context.age < 12:
                lines.append("- Use simple language appropriate for children")
            elif user_context.age > 65:
                lines.append("- Use clear, respectful language with life experience context")
            else:
                lines.append(f"- User is {user_context.age} years old")

        if user_context.interests:
            lines.append(f"- User interests: {', '.join(user_context.interests)}")

        if not lines:
            return prompt

        return prompt + "\n\nUSER CONTEXT:\n" + "\n".join(lines) + "\n"

    def compatibility(self, tone: ToneVariant, category: str) -> bool:
        return (tone.name, (category or "").lower()) not in INCOMPATIBLE_COMBINATIONS

    def by_complexity_range(self, min_complexity: int, max_complexity: int) -> list[ToneVariant]:
        """Tones whose typical complexity band overlaps `[min, max]`."""
        selected = []
        for tone in self._tones:
            low, high = TONE_COMPLEXITY.get(tone.name, (1, 10))
            if low <= max_complexity and high >= min_complexity:
                selected.append(tone)
        return selected
