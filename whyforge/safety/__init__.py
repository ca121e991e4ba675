"""Safety and validation package.

Rule-based input safety, schema-checked parsing of provider payloads, and the
multi-phase `ResponseValidator` used by the question pipeline.
"""
