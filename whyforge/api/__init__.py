"""WhyForge API adapter package.

Architectural role:
- Defines the external interaction boundary for HTTP and CLI interfaces.
- Performs transport-level validation and response shaping.
- Delegates generation to the pipelines built by `services.build_services`.
"""
