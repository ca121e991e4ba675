"""Image input adapter package.

Scope:
    Validates and decodes base64 image data URLs, runs best-effort OCR and falls
    back to a metadata-based description, producing text usable as question input.

Non-goals:
    - No object or scene recognition.
    - No temporary-file creation.
"""
