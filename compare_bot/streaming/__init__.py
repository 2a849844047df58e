"""Streaming utilities for the Anthropic API."""

from .anthropic_stream import AnthropicStreamer

__all__ = ["AnthropicStreamer"]
