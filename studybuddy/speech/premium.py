"""Client for the metered premium speech synthesis backend."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any

import httpx

from studybuddy.config import SpeechSettings
from studybuddy.logging import logger
from studybuddy.speech.ledger import TTSUsageInfo

FALLBACK_SIGNAL = "FALLBACK_TO_WEB_TTS"


class SpeechServiceError(RuntimeError):
    """Raised when premium synthesis fails or is misconfigured."""


class PremiumFallback(SpeechServiceError):
    """The backend asked the caller to use the local voice instead."""

    def __init__(self, reason: str, usage: TTSUsageInfo | None = None) -> None:
        super().__init__(f"Premium voice unavailable: {reason}")
        self.reason = reason
        self.usage = usage


@dataclass(slots=True)
class PremiumAudio:
    audio: bytes
    cached: bool = False
    usage: TTSUsageInfo | None = None


class PremiumVoiceClient:
    def __init__(self, http_client: httpx.AsyncClient, settings: SpeechSettings | None = None) -> None:
        self._client = http_client
        self._settings = settings or SpeechSettings()

    @property
    def configured(self) -> bool:
        return self._settings.premium_url is not None

    async def synthesize(
        self,
        text: str,
        *,
        voice_id: str,
        student_id: int,
        speed: float = 1.0,
    ) -> PremiumAudio:
        if not self.configured:
            raise SpeechServiceError("Premium voice backend is not configured.")

        payload = {
            "text": text,
            "voiceId": voice_id,
            "speed": speed,
            "language": self._settings.language,
            "studentId": student_id,
        }
        try:
            response = await self._client.post(
                str(self._settings.premium_url),
                json=payload,
                headers=self._headers(),
                timeout=self._settings.request_timeout_seconds,
            )
        except httpx.RequestError as exc:
            raise SpeechServiceError(f"Premium voice request failed: {exc}") from exc

        data = self._decode(response)
        usage = self._parse_usage(data.get("usageInfo"))
        error = data.get("error")
        if error == FALLBACK_SIGNAL:
            reason = str(data.get("reason") or "unspecified")
            logger.info("premium_tts_fallback", reason=reason, student_id=student_id)
            raise PremiumFallback(reason, usage)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = error or response.text[:500]
            raise SpeechServiceError(
                f"Premium voice request failed ({response.status_code}): {detail}"
            ) from exc
        if error:
            raise SpeechServiceError(str(error))

        encoded = data.get("audio")
        if not encoded:
            raise SpeechServiceError("No audio data received.")
        try:
            audio = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SpeechServiceError("Premium voice returned undecodable audio.") from exc

        cached = bool(data.get("cached", False))
        logger.info(
            "premium_tts_synthesized",
            student_id=student_id,
            voice_id=voice_id,
            audio_size=data.get("audioSize") or len(audio),
            cached=cached,
        )
        return PremiumAudio(audio=audio, cached=cached, usage=usage)

    def _headers(self) -> dict[str, str]:
        secret = self._settings.premium_api_key
        if secret is None:
            return {}
        return {"Authorization": f"Bearer {secret.get_secret_value()}"}

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            if response.is_error:
                return {}
            raise SpeechServiceError("Premium voice returned invalid JSON.") from None
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _parse_usage(value: Any) -> TTSUsageInfo | None:
        if not isinstance(value, dict):
            return None
        try:
            return TTSUsageInfo.model_validate(value)
        except ValueError:
            return None


__all__ = [
    "FALLBACK_SIGNAL",
    "PremiumAudio",
    "PremiumFallback",
    "PremiumVoiceClient",
    "SpeechServiceError",
]
