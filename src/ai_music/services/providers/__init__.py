"""
Music Generation Providers
Adapters translating generic generation requests into provider HTTP calls
"""

from .base import (
    CancellationOutcome,
    CancellationResult,
    ExtendInput,
    GeneratedClip,
    GenerationMode,
    MusicGenerationInput,
    MusicGenerationResult,
    MusicProviderAdapter,
    ProviderError,
    extract_error_message,
    first_present,
)
from .fal import FalMiniMaxAdapter, sanitize_fal_text
from .goapi import PiAPIAdapter, SunoAdapter

__all__ = [
    "CancellationOutcome",
    "CancellationResult",
    "ExtendInput",
    "GeneratedClip",
    "GenerationMode",
    "MusicGenerationInput",
    "MusicGenerationResult",
    "MusicProviderAdapter",
    "ProviderError",
    "extract_error_message",
    "first_present",
    "FalMiniMaxAdapter",
    "sanitize_fal_text",
    "PiAPIAdapter",
    "SunoAdapter",
]
