"""Prompting package.

Deterministic prompt-construction helpers (`prompt_builder`) and the tone catalog
(`tone_catalog`). Nothing here performs model invocation.
"""
