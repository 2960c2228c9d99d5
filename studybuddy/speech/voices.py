"""Premium voice catalogue offered to pro students."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class Voice:
    id: str
    name: str
    language: str
    language_code: str
    gender: Literal["male", "female", "neutral"]
    description: str = ""


PREMIUM_VOICES: tuple[Voice, ...] = (
    Voice("henry", "Henry", "Hindi/English (India)", "hi-IN", "male", "Indian accent, best for Hindi and Hinglish"),
    Voice("natasha", "Natasha", "Hindi/English (India)", "hi-IN", "female", "Indian female voice, natural Hindi pronunciation"),
    Voice("george", "George", "English (UK)", "en-GB", "male", "British accent, professional"),
    Voice("cliff", "Cliff", "English (US)", "en-US", "male", "American accent, clear"),
    Voice("mrbeast", "MrBeast", "English", "en-US", "male", "Energetic, fun"),
    Voice("gwyneth", "Gwyneth", "English", "en-US", "female", "Calm, professional"),
    Voice("oliver", "Oliver", "English (UK)", "en-GB", "male", "British, formal"),
)

PREVIEW_TEXT = "नमस्ते! मैं आपका Study Buddy हूं।"


def get_voice(voice_id: str) -> Voice | None:
    return next((voice for voice in PREMIUM_VOICES if voice.id == voice_id), None)


__all__ = ["PREMIUM_VOICES", "PREVIEW_TEXT", "Voice", "get_voice"]
