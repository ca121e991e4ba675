"""Provider/runtime configuration for the LLM layer.

Architectural role:
    Centralizes model/provider selection, retry settings and credential lookup for
    `whyforge.llm.service` and `whyforge.llm.client`.

Model call flow integration:
    - `service.CompletionClient` consumes `CompletionSettings` (attempt ceiling and
      backoff parameters).
    - `client.HttpCompletionProvider` consumes the provider endpoint map and key
      resolution.

Determinism:
    Deterministic for a fixed process environment and key files. Values are resolved
    at import time (plus runtime key-file reads in `load_key`).

Failure behavior:
    Missing key material is represented as `None`; `client` turns it into a
    non-retryable provider error.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

# Primary model routing controls.
PROVIDER = os.getenv("PROVIDER", "openai")
MODEL_NAME = os.getenv("MODEL_NAME", "gpt-4o-mini")

# OpenAI-compatible and provider-specific endpoint map.
PROVIDERS = {

    "local": {
        "url": "http://127.0.0.1:8080/v1/chat/completions",
        "key_file": None
    },

    "openai": {
        "url": "https://api.openai.com/v1/chat/completions",
        "key_file": "config/openai.key"
    },

    "groq": {
        "url": "https://api.groq.com/openai/v1/chat/completions",
        "key_file": "config/groq.key"
    },

    "together": {
        "url": "https://api.together.xyz/v1/chat/completions",
        "key_file": "config/together.key"
    },

    "openrouter": {
        "url": "https://openrouter.ai/api/v1/chat/completions",
        "key_file": "config/openrouter.key"
    },

    "mistral": {
        "url": "https://api.mistral.ai/v1/chat/completions",
        "key_file": "config/mistral.key"
    },

    "deepinfra": {
        "url": "https://api.deepinfra.com/v1/openai/chat/completions",
        "key_file": "config/deepinfra.key"
    },

    "fireworks": {
        "url": "https://api.fireworks.ai/inference/v1/chat/completions",
        "key_file": "config/fireworks.key"
    },

    "anthropic": {
        "url": "https://api.anthropic.com/v1/messages",
        "key_file": "config/anthropic.key"
    },

    "gemini": {
        "url": "https://generativelanguage.googleapis.com/v1beta/models",
        "key_file": "config/gemini.key"
    },

}


ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"

GEMINI_URL_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "{model}:generateContent"
)

# Providers known to honour `response_format={"type": "json_object"}`.
JSON_MODE_PROVIDERS = {"openai", "groq", "together", "mistral", "deepinfra", "fireworks"}

# Status codes and provider codes used for retry classification in `service`.
RATE_LIMIT_STATUS = 429
RATE_LIMIT_CODES = {"rate_limit_exceeded", "rate_limited"}
TRANSIENT_STATUSES = {408, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class CompletionSettings:
    """Generation and retry parameters for `CompletionClient`.

    Relevant environment variables:
        - `LLM_TEMPERATURE`
        - `LLM_MAX_TOKENS`
        - `LLM_TIMEOUT_SECONDS`
        - `LLM_RETRY_ATTEMPTS`
        - `LLM_BACKOFF_BASE_MS`
        - `LLM_BACKOFF_JITTER_MS`
    """

    provider: str = PROVIDER
    model: str = MODEL_NAME
    temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "500"))
    timeout_seconds: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))
    retry_attempts: int = int(os.getenv("LLM_RETRY_ATTEMPTS", "3"))
    backoff_base_ms: float = float(os.getenv("LLM_BACKOFF_BASE_MS", "1000"))
    backoff_jitter_ms: float = float(os.getenv("LLM_BACKOFF_JITTER_MS", "1000"))


def load_key(path):
    """Load API key from environment override or key file.

    Resolution order:
        1. Environment variable inferred from file stem (for example
           `config/openai.key` -> `OPENAI_API_KEY`).
        2. Raw file contents at `path`.

    Args:
        path: Configured key file path or `None`.

    Returns:
        Key string or `None` when not available.

    Edge cases:
        - `None` path returns `None`.
        - Missing file returns `None`.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip()
