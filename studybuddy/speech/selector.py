"""Chooses between metered premium voice and the unmetered local voice.

Every ``speak()`` starts a new generation. Work that finishes after the
generation has moved on (a slow synthesis response, a killed player) is
discarded instead of touching the shared state.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Literal, Protocol

from studybuddy.config import SpeechSettings
from studybuddy.domain.plans import PlanTier
from studybuddy.i18n import I18nService
from studybuddy.logging import logger
from studybuddy.services.exceptions import ValidationFailed
from studybuddy.speech.cache import AudioCache
from studybuddy.speech.engines import AudioPlayer, FallbackSynthesizer, PlaybackError
from studybuddy.speech.ledger import TTSLedger, TTSUsageInfo
from studybuddy.speech.premium import PremiumAudio, PremiumFallback
from studybuddy.speech.voices import PREVIEW_TEXT, get_voice

LOW_QUOTA_CHARS = 10_000


class ActiveEngine(str, Enum):
    PREMIUM = "premium"
    FALLBACK = "fallback"
    NONE = "none"


class PremiumSynthesizer(Protocol):
    @property
    def configured(self) -> bool: ...

    async def synthesize(
        self, text: str, *, voice_id: str, student_id: int, speed: float = 1.0
    ) -> PremiumAudio: ...


@dataclass(slots=True)
class SpeechState:
    voice_id: str
    is_speaking: bool = False
    is_loading: bool = False
    error: str | None = None
    active_engine: ActiveEngine = ActiveEngine.NONE
    usage: TTSUsageInfo | None = None


@dataclass(frozen=True, slots=True)
class EngineBadge:
    label: str
    style: Literal["premium", "fallback", "none"]


class SpeechEngineSelector:
    def __init__(
        self,
        student_id: int,
        premium: PremiumSynthesizer,
        fallback: FallbackSynthesizer,
        player: AudioPlayer,
        ledger: TTSLedger,
        cache: AudioCache | None = None,
        settings: SpeechSettings | None = None,
        *,
        i18n: I18nService | None = None,
        locale: str | None = None,
    ) -> None:
        self.student_id = student_id
        self._settings = settings or SpeechSettings()
        self._premium = premium
        self._fallback = fallback
        self._player = player
        self._ledger = ledger
        self._cache = cache or AudioCache(
            self._settings.cache_capacity, key_chars=self._settings.cache_key_chars
        )
        self._i18n = i18n or I18nService()
        self._locale = locale
        self._premium_task: asyncio.Task[PremiumAudio] | None = None
        self._state = SpeechState(voice_id=self._settings.default_voice)
        self.generation = 0

    @property
    def state(self) -> SpeechState:
        return replace(self._state)

    # Public API -------------------------------------------------------

    async def refresh_usage(self) -> TTSUsageInfo:
        """Reload the premium quota; a failed lookup disables premium until the next refresh."""

        try:
            usage = await self._ledger.usage(self.student_id)
        except Exception as exc:
            logger.warning("tts_usage_refresh_failed", student_id=self.student_id, error=str(exc))
            usage = TTSUsageInfo()
        self._state.usage = usage
        return usage

    def set_voice(self, voice_id: str) -> None:
        if get_voice(voice_id) is None:
            raise ValidationFailed(
                f"Unknown voice {voice_id!r}.", code="speech.unknown_voice", voice=voice_id
            )
        self._state.voice_id = voice_id

    async def preview_voice(self, voice_id: str) -> bool:
        return await self.speak(PREVIEW_TEXT, voice_id=voice_id)

    async def stop(self) -> None:
        self.generation += 1
        task, self._premium_task = self._premium_task, None
        if task is not None and not task.done():
            task.cancel()
        await self._player.stop()
        await self._fallback.stop()
        self._state.is_speaking = False
        self._state.is_loading = False
        self._state.active_engine = ActiveEngine.NONE

    async def speak(self, text: str, voice_id: str | None = None, speed: float = 1.0) -> bool:
        """Speak ``text``; returns True when some engine played it to the end."""

        if not text or not text.strip():
            return False

        await self.stop()
        generation = self.generation
        self._state.is_loading = True
        self._state.error = None
        voice = voice_id or self._state.voice_id

        if self._premium_eligible(text):
            played = await self._speak_premium(text, voice, speed, generation)
            if not self._is_current(generation):
                return False
            if played:
                return True
            logger.info("speech_premium_fell_back", student_id=self.student_id, generation=generation)

        if not self._is_current(generation):
            return False
        played = await self._speak_fallback(text, speed, generation)
        if not self._is_current(generation):
            return False
        if not played:
            self._state.error = self._message("speech.playback_failed")
            self._state.is_loading = False
            self._state.is_speaking = False
            self._state.active_engine = ActiveEngine.NONE
        return played

    def status_message(self) -> str | None:
        usage = self._state.usage
        if usage is None:
            return None
        plan = PlanTier.parse(usage.plan)
        if plan is not PlanTier.PRO:
            return self._message("speech.status.fallback_plan", plan=plan.value.title())
        if not usage.can_use_premium:
            return self._message("speech.status.limit_reached")
        if usage.tts_remaining < LOW_QUOTA_CHARS:
            return self._message(
                "speech.status.low_quota", thousands=round(usage.tts_remaining / 1000)
            )
        return None

    def engine_badge(self) -> EngineBadge:
        match self._state.active_engine:
            case ActiveEngine.PREMIUM:
                return EngineBadge(self._message("speech.badge.premium"), "premium")
            case ActiveEngine.FALLBACK:
                return EngineBadge(self._message("speech.badge.fallback"), "fallback")
            case _:
                return EngineBadge("", "none")

    # Engines ----------------------------------------------------------

    def _premium_eligible(self, text: str) -> bool:
        usage = self._state.usage
        return (
            usage is not None
            and PlanTier.parse(usage.plan) is PlanTier.PRO
            and usage.can_use_premium
            and usage.tts_remaining >= len(text)
            and self._premium.configured
        )

    async def _speak_premium(self, text: str, voice_id: str, speed: float, generation: int) -> bool:
        audio = self._cache.get(voice_id, text)
        if audio is None:
            audio = await self._synthesize(text, voice_id, speed, generation)
            if audio is None:
                return False
        else:
            logger.debug("speech_cache_hit", student_id=self.student_id, voice_id=voice_id)

        if not self._is_current(generation):
            return False
        self._state.is_speaking = True
        self._state.is_loading = False
        self._state.active_engine = ActiveEngine.PREMIUM
        try:
            await self._player.play(audio, speed=speed)
        except PlaybackError as exc:
            if self._is_current(generation):
                logger.warning("speech_premium_playback_failed", error=str(exc))
                self._state.is_speaking = False
                self._state.active_engine = ActiveEngine.NONE
            return False

        if self._is_current(generation):
            self._state.is_speaking = False
            self._state.active_engine = ActiveEngine.NONE
        return True

    async def _synthesize(
        self, text: str, voice_id: str, speed: float, generation: int
    ) -> bytes | None:
        task = asyncio.create_task(
            self._premium.synthesize(
                text, voice_id=voice_id, student_id=self.student_id, speed=speed
            )
        )
        self._premium_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._premium_task is task:
                self._premium_task = None

        if task.cancelled():
            return None
        error = task.exception()
        if not self._is_current(generation):
            return None
        if isinstance(error, PremiumFallback):
            self._merge_usage(error.usage)
            return None
        if error is not None:
            logger.warning("speech_premium_failed", student_id=self.student_id, error=str(error))
            return None

        # Charge only for audio that will actually be used.
        try:
            decision = await self._ledger.increment_tts(self.student_id, len(text))
        except Exception as exc:
            logger.warning("speech_premium_debit_failed", student_id=self.student_id, error=str(exc))
            return None
        self._state.usage = (self._state.usage or TTSUsageInfo()).after_debit(decision)
        if not decision.use_premium_tts:
            logger.info(
                "speech_premium_debit_denied",
                student_id=self.student_id,
                reason=decision.reason.value if decision.reason else None,
            )
            return None

        audio = task.result().audio
        self._cache.put(voice_id, text, audio)
        return audio

    async def _speak_fallback(self, text: str, speed: float, generation: int) -> bool:
        if not self._is_current(generation):
            return False
        self._state.is_speaking = True
        self._state.is_loading = False
        self._state.active_engine = ActiveEngine.FALLBACK
        try:
            await self._fallback.speak(
                text,
                rate=self._settings.fallback_rate * speed,
                language=self._settings.language,
            )
        except PlaybackError as exc:
            if self._is_current(generation):
                logger.warning("speech_fallback_failed", error=str(exc))
                self._state.is_speaking = False
                self._state.active_engine = ActiveEngine.NONE
            return False

        if self._is_current(generation):
            self._state.is_speaking = False
            self._state.active_engine = ActiveEngine.NONE
        return True

    # Helpers ----------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self.generation

    def _merge_usage(self, update: TTSUsageInfo | None) -> None:
        current = self._state.usage or TTSUsageInfo()
        changes = update.model_dump(exclude_unset=True) if update is not None else {}
        changes["can_use_premium"] = False
        self._state.usage = current.model_copy(update=changes)

    def _message(self, key: str, **kwargs) -> str:
        return self._i18n.gettext(key, locale=self._locale, **kwargs)


__all__ = [
    "ActiveEngine",
    "EngineBadge",
    "LOW_QUOTA_CHARS",
    "PremiumSynthesizer",
    "SpeechEngineSelector",
    "SpeechState",
]
