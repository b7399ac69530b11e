"""Streaming chat relay for OpenAI-compatible completion providers."""

__version__ = "0.1.0"
