"""WhyForge: turn arbitrary input into validated "Why" questions and answers.

Subpackages:
    - `llm`: provider configuration, HTTP transport, retrying completion client.
    - `prompting`: system prompts, archetypes and the tone catalog.
    - `safety`: input safety, payload schemas and response validation.
    - `offline`: bounded expiring stores and the offline question cache.
    - `image`: image data URL decoding, OCR and description.
    - `core`: shared types, errors, settings and the two generation pipelines.
    - `api`: HTTP and CLI adapters.
"""
