"""Provider-specific transport for completion requests.

Architectural role:
    Executes one HTTP request against the configured model provider and returns the
    raw completion text. This is the pluggable `CompletionProvider` used by
    `whyforge.llm.service.CompletionClient`.

Model invocation flow:
    `CompletionClient.generate_completion` -> `provider.complete(system, user)` ->
    provider branch (OpenAI-compatible / Anthropic / Gemini) -> completion text.

Retry behavior:
    No retry loop is implemented here. Each call is attempted once with the
    configured timeout; retry and backoff belong to `CompletionClient`.

Failure handling model:
    Every failure is raised as `ProviderCallError` carrying an HTTP-like `status`
    and optional provider `code`, so the caller can classify it. Timeouts map to
    status 408 and connection failures to 503.
"""

import logging
from typing import Protocol

import requests

from whyforge.llm.provider_config import (
    ANTHROPIC_URL,
    GEMINI_URL_TEMPLATE,
    JSON_MODE_PROVIDERS,
    PROVIDERS,
    CompletionSettings,
    load_key,
)


logger = logging.getLogger(__name__)


class ProviderCallError(Exception):
    """Raw provider failure with an HTTP-like status and optional error code."""

    def __init__(self, message: str, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class CompletionProvider(Protocol):
    """Minimal interface required by `CompletionClient`.

    `complete` may be a plain function or `async def`; it must return the raw
    completion text or raise `ProviderCallError`.
    """

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...


def _error_code_from_response(response) -> str | None:
    """Best-effort extraction of a provider error code from an error body."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("code") or error.get("type")
    return None


class HttpCompletionProvider:
    """requests-based provider covering OpenAI-compatible, Anthropic and Gemini APIs."""

    def __init__(self, settings: CompletionSettings | None = None) -> None:
        self.settings = settings or CompletionSettings()

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one completion request and return the response text.

        Args:
            system_prompt: Persona/instruction block.
            user_prompt: Task prompt.

        Returns:
            Trimmed completion text (expected to be JSON).

        Raises:
            ProviderCallError: on missing configuration, HTTP errors, transport
                errors or unexpected response shapes.
        """
        provider = self.settings.provider

        if provider == "anthropic":
            url, headers, payload = self._anthropic_request(system_prompt, user_prompt)
        elif provider == "gemini":
            url, headers, payload = self._gemini_request(system_prompt, user_prompt)
        elif provider in PROVIDERS:
            url, headers, payload = self._openai_request(system_prompt, user_prompt)
        else:
            raise ProviderCallError(f"Invalid provider: {provider}", code="invalid_provider")

        data = self._post(url, headers, payload)

        try:
            if provider == "anthropic":
                return data["content"][0]["text"].strip()
            if provider == "gemini":
                return data["candidates"][0]["content"]["parts"][0]["text"].strip()
            return data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as err:
            raise ProviderCallError(
                f"{provider.upper()} returned an unexpected response shape",
                code="bad_response",
            ) from err

    def _openai_request(self, system_prompt: str, user_prompt: str):
        provider = self.settings.provider
        config = PROVIDERS[provider]

        headers = {
            "Content-Type": "application/json"
        }

        if config["key_file"]:
            api_key = load_key(config["key_file"])
            if not api_key:
                raise ProviderCallError(f"{provider.upper()} key not found", code="missing_key")
            headers["Authorization"] = f"Bearer {api_key}"

        payload = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }

        if provider in JSON_MODE_PROVIDERS:
            payload["response_format"] = {"type": "json_object"}

        return config["url"], headers, payload

    def _anthropic_request(self, system_prompt: str, user_prompt: str):
        api_key = load_key(PROVIDERS["anthropic"]["key_file"])
        if not api_key:
            raise ProviderCallError("ANTHROPIC key not found", code="missing_key")

        headers = {
            "x-api-key": api_key,
            "anthropic-version": "2023-06-01",
            "Content-Type": "application/json",
        }

        payload = {
            "model": self.settings.model,
            "max_tokens": self.settings.max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": self.settings.temperature,
        }

        return ANTHROPIC_URL, headers, payload

    def _gemini_request(self, system_prompt: str, user_prompt: str):
        api_key = load_key(PROVIDERS["gemini"]["key_file"])
        if not api_key:
            raise ProviderCallError("GEMINI key not found", code="missing_key")

        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {
                "temperature": self.settings.temperature,
                "maxOutputTokens": self.settings.max_tokens,
                "responseMimeType": "application/json",
            },
        }

        return GEMINI_URL_TEMPLATE.format(model=self.settings.model), headers, payload

    def _post(self, url: str, headers: dict, payload: dict) -> dict:
        label = self.settings.provider.upper()
        try:
            response = requests.post(
                url,
                headers=headers,
                json=payload,
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.HTTPError as err:
            status = getattr(err.response, "status_code", None)
            code = _error_code_from_response(err.response) if err.response is not None else None
            raise ProviderCallError(f"{label} HTTP ERROR ({status})", status=status, code=code) from err

        except requests.exceptions.Timeout as err:
            raise ProviderCallError(f"{label} REQUEST TIMED OUT", status=408, code="timeout") from err

        except requests.exceptions.ConnectionError as err:
            raise ProviderCallError(f"{label} CONNECTION FAILED", status=503, code="connection_error") from err

        except ValueError as err:
            raise ProviderCallError(f"{label} RETURNED NON-JSON BODY", code="bad_response") from err

        except requests.exceptions.RequestException as err:
            raise ProviderCallError(f"{label} REQUEST FAILED") from err
