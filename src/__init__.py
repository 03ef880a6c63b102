"""Emotionally-aware conversational companion."""

__version__ = "0.3.0"
