"""
AI Music Catalog
Available generation models, style/mood vocabularies, mastering options and
credit cost calculation
"""

import math
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MusicStyle(str, Enum):
    POP = "pop"
    ROCK = "rock"
    HIPHOP = "hiphop"
    RNB = "rnb"
    JAZZ = "jazz"
    ELECTRONIC = "electronic"
    CLASSICAL = "classical"
    COUNTRY = "country"
    FOLK = "folk"
    METAL = "metal"
    REGGAE = "reggae"
    BLUES = "blues"
    LATIN = "latin"
    INDIE = "indie"


class MusicMood(str, Enum):
    HAPPY = "happy"
    SAD = "sad"
    ENERGETIC = "energetic"
    CALM = "calm"
    ROMANTIC = "romantic"
    MELANCHOLIC = "melancholic"
    UPLIFTING = "uplifting"
    DARK = "dark"
    DREAMY = "dreamy"
    AGGRESSIVE = "aggressive"
    NOSTALGIC = "nostalgic"
    EPIC = "epic"


class MasteringIntensity(str, Enum):
    LO = "lo"
    MED = "med"
    HI = "hi"


class MusicDuration(int, Enum):
    """Supported track lengths in seconds"""
    ONE_MINUTE = 60
    TWO_MINUTES = 120
    THREE_MINUTES = 180
    FOUR_MINUTES = 240
    FIVE_MINUTES = 300


MUSIC_DURATIONS: List[int] = [d.value for d in MusicDuration]


class CreditCost(BaseModel):
    base: int = Field(..., ge=0, description="Credits charged per generation")
    per_minute: int = Field(..., ge=0, description="Additional credits per started minute")


class ProcessingTime(BaseModel):
    min: int
    max: int


class MusicModelConfig(BaseModel):
    """Static description of one generation model"""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str
    name: str
    description: str
    provider: str
    model_identifier: str
    is_active: bool = True
    supports_lyrics: bool = True
    supports_instrumental: bool = True
    min_duration: int = 60
    max_duration: int = 300
    durations: List[int] = Field(default_factory=lambda: list(MUSIC_DURATIONS))
    styles: List[MusicStyle] = Field(default_factory=lambda: list(MusicStyle))
    moods: List[MusicMood] = Field(default_factory=lambda: list(MusicMood))
    credit_cost: CreditCost
    estimated_processing_time: ProcessingTime
    output_format: str = "mp3"
    sample_rate: int = 44100
    features: List[str] = Field(default_factory=list)


class MasteringConfig(BaseModel):
    id: MasteringIntensity
    name: str
    description: str
    credit_cost: int


MUSIC_MODELS: Dict[str, MusicModelConfig] = {
    "minimax-music-2.0": MusicModelConfig(
        id="minimax-music-2.0",
        name="MiniMax Music 2.0",
        description="Professional music generation with realistic vocals. Up to 5 minutes with lyrics support.",
        provider="fal",
        model_identifier="fal-ai/minimax-music",
        credit_cost=CreditCost(base=8, per_minute=2),
        estimated_processing_time=ProcessingTime(min=60, max=300),
        features=[
            "AI vocals with lyrics",
            "Multiple music styles",
            "Up to 5 minutes",
            "Professional quality audio",
            "Song structure tags support",
        ],
    ),
    "suno-music-u": MusicModelConfig(
        id="suno-music-u",
        name="Suno",
        description="Full songs with vocals, custom lyrics and track extension.",
        provider="suno",
        model_identifier="music-u",
        credit_cost=CreditCost(base=10, per_minute=2),
        estimated_processing_time=ProcessingTime(min=60, max=180),
        features=["AI vocals with lyrics", "Custom lyrics mode", "Track extension"],
    ),
    "udio-music-u": MusicModelConfig(
        id="udio-music-u",
        name="Udio",
        description="Song generation with style tags and negative tags.",
        provider="piapi",
        model_identifier="music-u",
        credit_cost=CreditCost(base=10, per_minute=2),
        estimated_processing_time=ProcessingTime(min=90, max=240),
        features=["AI vocals with lyrics", "Negative style tags"],
    ),
}

MASTERING_OPTIONS: Dict[MasteringIntensity, MasteringConfig] = {
    MasteringIntensity.LO: MasteringConfig(
        id=MasteringIntensity.LO,
        name="Light",
        description="Subtle enhancement, preserves original dynamics",
        credit_cost=2,
    ),
    MasteringIntensity.MED: MasteringConfig(
        id=MasteringIntensity.MED,
        name="Medium",
        description="Balanced mastering for most genres",
        credit_cost=3,
    ),
    MasteringIntensity.HI: MasteringConfig(
        id=MasteringIntensity.HI,
        name="Heavy",
        description="Maximum loudness and punch, great for EDM/Rock",
        credit_cost=5,
    ),
}

# Integrated loudness targets in LUFS
TARGET_LOUDNESS: Dict[MasteringIntensity, float] = {
    MasteringIntensity.LO: -14.0,
    MasteringIntensity.MED: -11.0,
    MasteringIntensity.HI: -8.0,
}

PREMIUM_MASTERING_SURCHARGE = 10

FORMAT_CREDIT_COSTS: Dict[str, int] = {
    "wav": 2,
    "flac": 3,
}

DEFAULT_MUSIC_SETTINGS = {
    "model": "minimax-music-2.0",
    "duration": 120,
    "style": MusicStyle.POP,
    "mood": MusicMood.HAPPY,
    "instrumental": False,
}


def get_model_config(model_id: str) -> Optional[MusicModelConfig]:
    return MUSIC_MODELS.get(model_id)


def get_active_models() -> List[MusicModelConfig]:
    return [model for model in MUSIC_MODELS.values() if model.is_active]


def get_models_for_provider(provider: str) -> List[MusicModelConfig]:
    return [model for model in get_active_models() if model.provider == provider]


def calculate_music_cost(model_id: str, duration_seconds: int) -> int:
    """Credits for one generation: base price plus a surcharge per extra started minute.

    Unknown models cost nothing. Durations below one minute are billed as one
    minute, so the result never drops below the base price.
    """
    model = get_model_config(model_id)
    if model is None:
        return 0

    minutes = max(1, math.ceil(duration_seconds / 60))
    return model.credit_cost.base + (minutes - 1) * model.credit_cost.per_minute


def _intensity(intensity) -> Optional[MasteringIntensity]:
    try:
        return MasteringIntensity(intensity)
    except ValueError:
        return None


def get_mastering_cost(intensity) -> int:
    option = MASTERING_OPTIONS.get(_intensity(intensity))
    return option.credit_cost if option else 0


def calculate_mastering_cost(intensity, use_premium: bool = False) -> int:
    """Mastering cost including the premium-provider surcharge"""
    cost = get_mastering_cost(intensity)
    if use_premium:
        cost += PREMIUM_MASTERING_SURCHARGE
    return cost


def get_target_loudness(intensity) -> float:
    """Target integrated loudness (LUFS) for a mastering intensity, medium by default"""
    return TARGET_LOUDNESS.get(_intensity(intensity), TARGET_LOUDNESS[MasteringIntensity.MED])


def get_format_credit_cost(format_name: str) -> int:
    return FORMAT_CREDIT_COSTS.get(format_name.lower(), 0)


def is_valid_duration(duration_seconds: int) -> bool:
    return duration_seconds in MUSIC_DURATIONS
