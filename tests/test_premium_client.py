"""Premium speech synthesis client."""

from __future__ import annotations

import base64
import json

import httpx
import pytest
from pydantic import SecretStr

from studybuddy.config import SpeechSettings
from studybuddy.speech.premium import (
    PremiumFallback,
    PremiumVoiceClient,
    SpeechServiceError,
)

PREMIUM_URL = "https://voice.example.com/synthesize"


def _settings(**overrides) -> SpeechSettings:
    return SpeechSettings(premium_url=PREMIUM_URL, **overrides)


@pytest.mark.asyncio
async def test_synthesize_posts_request_and_decodes_audio():
    seen = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={"audio": base64.b64encode(b"mp3-bytes").decode(), "cached": True, "audioSize": 9},
        )

    settings = _settings(premium_api_key=SecretStr("secret"))
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        result = await PremiumVoiceClient(client, settings).synthesize(
            "Photosynthesis", voice_id="natasha", student_id=42, speed=1.25
        )

    assert result.audio == b"mp3-bytes"
    assert result.cached is True
    assert seen["body"] == {
        "text": "Photosynthesis",
        "voiceId": "natasha",
        "speed": 1.25,
        "language": "hi-IN",
        "studentId": 42,
    }
    assert seen["auth"] == "Bearer secret"


@pytest.mark.asyncio
async def test_fallback_signal_raises_with_usage():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "error": "FALLBACK_TO_WEB_TTS",
                "reason": "limit_reached",
                "usageInfo": {"ttsUsed": 90000, "ttsRemaining": 0, "canUsePremium": False},
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(PremiumFallback) as exc_info:
            await PremiumVoiceClient(client, _settings()).synthesize(
                "hello", voice_id="henry", student_id=1
            )

    assert exc_info.value.reason == "limit_reached"
    assert exc_info.value.usage.tts_used == 90_000
    assert exc_info.value.usage.can_use_premium is False


@pytest.mark.asyncio
async def test_fallback_signal_on_error_status():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"error": "FALLBACK_TO_WEB_TTS", "reason": "not_pro"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(PremiumFallback):
            await PremiumVoiceClient(client, _settings()).synthesize(
                "hello", voice_id="henry", student_id=1
            )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="upstream exploded"),
        httpx.Response(200, json={"error": "voice not found"}),
        httpx.Response(200, json={"cached": False}),
        httpx.Response(200, json={"audio": "***not base64***"}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_failures_raise_service_error(response):
    async def handler(request: httpx.Request) -> httpx.Response:
        return response

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(SpeechServiceError) as exc_info:
            await PremiumVoiceClient(client, _settings()).synthesize(
                "hello", voice_id="henry", student_id=1
            )
    assert not isinstance(exc_info.value, PremiumFallback)


@pytest.mark.asyncio
async def test_network_errors_are_not_retried():
    calls = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(SpeechServiceError):
            await PremiumVoiceClient(client, _settings()).synthesize(
                "hello", voice_id="henry", student_id=1
            )
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_unconfigured_backend():
    async with httpx.AsyncClient() as client:
        service = PremiumVoiceClient(client, SpeechSettings(premium_url=""))
        assert service.configured is False
        with pytest.raises(SpeechServiceError):
            await service.synthesize("hello", voice_id="henry", student_id=1)
