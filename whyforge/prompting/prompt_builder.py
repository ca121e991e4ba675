"""Prompt assembly helpers used by the question/answer pipelines.

This module is intentionally narrow: it only builds prompt strings from already
selected inputs (tone, archetype, user context). Tone selection, validation and
model invocation happen outside this module.

Design constraints:
    - Deterministic construction for identical inputs.
    - Fixed ordering of prompt components per prompt kind.
    - No hidden side effects (no I/O, no global state mutation).

Prompt safety model:
    - Safety is instruction-led, not parser-enforced.
    - User text is interpolated as a raw string after the input safety gate.
    - Response shape is enforced downstream by `whyforge.safety.schemas`.
"""

from whyforge.core.types import Archetype, QuestionResult, ToneVariant


# =========================================================
# QUESTION SYSTEM PROMPT
# =========================================================
# Persona + response contract for question generation. The JSON keys listed
# here are the ones `validate_structure` checks.

QUESTION_SYSTEM_PROMPT = (
    "You are a Socratic Polymath, an expert at transforming any input into "
    "profound \"Why\" questions that spark curiosity and learning.\n\n"
    "CORE CONSTRAINTS:\n"
    "1. ONLY generate \"Why\" questions - never \"How\", \"What\", \"When\", or \"Where\"\n"
    "2. Focus on underlying causality and deeper meaning\n"
    "3. Avoid obvious or trivial questions\n"
    "4. Questions must be scientifically grounded but accessible\n"
    "5. Return ONLY valid JSON in the specified format\n\n"
    "RESPONSE FORMAT:\n"
    "{\n"
    "  \"question\": \"Why does [phenomenon] occur?\",\n"
    "  \"complexity_score\": 1-10,\n"
    "  \"category\": \"biological|physical|psychological|social|philosophical\",\n"
    "  \"hook_line\": \"A compelling one-liner that makes the question irresistible\"\n"
    "}\n\n"
    "If the input cannot generate a meaningful \"Why\" question, pivot to explore "
    "the deeper principles behind the concept."
)

WHY_CONSTRAINT_PROMPT = (
    "CRITICAL: The question MUST start with \"Why\" and focus on causality.\n"
    "Reject inputs that cannot lead to meaningful causal questions.\n"
    "If input is inappropriate, respond with a pivot to related causal principles.\n"
)


# =========================================================
# ARCHETYPES
# =========================================================
# One archetype per category. Templates carry an `{input}` placeholder and are
# only used to bias phrasing; the output category is not checked against them.

QUESTION_ARCHETYPES = (
    Archetype(
        name="The Biological Why",
        prompt_template="Focus on evolutionary, biological, or physiological causality behind {input}",
        category="biological",
        complexity_range=(3, 8),
    ),
    Archetype(
        name="The Physical Why",
        prompt_template="Explore the physics, chemistry, or mechanical principles that cause {input}",
        category="physical",
        complexity_range=(4, 9),
    ),
    Archetype(
        name="The Psychological Why",
        prompt_template="Investigate the cognitive, emotional, or behavioral reasons behind {input}",
        category="psychological",
        complexity_range=(2, 7),
    ),
    Archetype(
        name="The Social Why",
        prompt_template="Examine the cultural, societal, or interpersonal forces that create {input}",
        category="social",
        complexity_range=(3, 8),
    ),
    Archetype(
        name="The Philosophical Why",
        prompt_template="Question the fundamental nature, purpose, or meaning of {input}",
        category="philosophical",
        complexity_range=(5, 10),
    ),
)


# =========================================================
# QUESTION PROMPT
# =========================================================
# Prompt component order:
#   1) Why constraint block
#   2) Input to transform
#   3) Rendered archetype template
# Tone and user context are appended by `ToneCatalog`.

def build_question_prompt(user_input: str, archetype: Archetype) -> str:
    """Build the base question prompt before tone/user-context injection."""
    cleaned = user_input.strip()
    return (
        WHY_CONSTRAINT_PROMPT +
        "\nInput to transform: \"" + cleaned + "\"\n\n"
        "Archetype: " + archetype.render(cleaned)
    )


# =========================================================
# ANSWER PROMPTS
# =========================================================

ANSWER_SYSTEM_PROMPT = (
    "You are an expert educator who provides engaging, accurate answers to "
    "\"Why\" questions.\n\n"
    "CORE PRINCIPLES:\n"
    "1. Provide scientifically accurate, well-researched answers\n"
    "2. Make complex topics accessible and engaging\n"
    "3. Include credible sources when possible\n"
    "4. Adapt tone based on wildcard instructions\n"
    "5. Return ONLY valid JSON in the specified format\n\n"
    "RESPONSE FORMAT:\n"
    "{\n"
    "  \"answer\": \"Comprehensive, engaging answer to the question\",\n"
    "  \"sources\": [\"Source 1\", \"Source 2\", \"Source 3\"],\n"
    "  \"confidence_score\": 1-100\n"
    "}\n\n"
    "Focus on causality, underlying mechanisms, and fascinating details that "
    "spark further curiosity."
)


def build_answer_prompt(question: str, tone: ToneVariant) -> str:
    return (
        "Question to answer: \"" + question.strip() + "\"\n\n"
        "TONE MODIFIER: " + tone.tone_instruction + "\n\n"
        "Provide a comprehensive answer that explains the underlying \"why\" "
        "with fascinating details and scientific accuracy."
    )


# =========================================================
# HALLUCINATION CHECK PROMPTS
# =========================================================

FACT_CHECK_SYSTEM_PROMPT = "You are a scientific fact-checker focused on accuracy and logic."


def build_hallucination_prompt(result: QuestionResult) -> str:
    """Build the fact-checking prompt for an already generated question."""
    return (
        "You are a fact-checker. Evaluate this question for scientific accuracy "
        "and logical coherence:\n\n"
        f"Question: \"{result.question}\"\n"
        f"Category: {result.category}\n"
        f"Complexity: {result.complexity_score}\n\n"
        "Respond with JSON:\n"
        "{\n"
        "  \"is_valid\": boolean,\n"
        "  \"confidence_score\": 0-100,\n"
        "  \"issues\": [\"list of any factual or logical problems\"]\n"
        "}\n\n"
        "Focus on:\n"
        "1. Scientific accuracy of underlying assumptions\n"
        "2. Logical coherence of the causal relationship\n"
        "3. Appropriateness of complexity score\n"
        "4. Category classification accuracy\n"
    )
