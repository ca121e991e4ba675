"""LLM access package.

Architectural role:
    Provides provider configuration, transport adapters and the retrying
    completion client used by the generation pipelines.

Module split:
    - `provider_config`: environment-driven provider, model and retry settings.
    - `client`: provider-specific HTTP transport and response parsing.
    - `service`: `CompletionClient` with retry, backoff and error classification.
"""
