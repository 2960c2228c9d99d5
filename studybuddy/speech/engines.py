"""Local playback and unmetered speech synthesis.

Both engines shell out to a configurable command and can be stopped while
running; ``stop()`` kills the child process.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, Sequence

from studybuddy.config import SpeechSettings
from studybuddy.logging import logger


class PlaybackError(RuntimeError):
    """Raised when a local engine could not produce sound."""


class AudioPlayer(Protocol):
    async def play(self, audio: bytes, *, speed: float = 1.0) -> None: ...

    async def stop(self) -> None: ...


class FallbackSynthesizer(Protocol):
    async def speak(self, text: str, *, rate: float, language: str) -> None: ...

    async def stop(self) -> None: ...


class _SubprocessEngine:
    def __init__(self, name: str) -> None:
        self._name = name
        self._process: asyncio.subprocess.Process | None = None
        self._stops = 0

    async def _run(self, argv: Sequence[str], stdin: bytes | None = None) -> None:
        stops = self._stops
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise PlaybackError(f"{self._name} command unavailable: {argv[0]}") from exc

        # stop() ran while the child was spawning and could not see it.
        if self._stops != stops:
            await self._kill(process)
            logger.debug("speech_engine_stopped_during_spawn", engine=self._name)
            raise PlaybackError(f"{self._name} stopped before playback started")

        self._process = process
        try:
            _, stderr = await process.communicate(stdin)
        except asyncio.CancelledError:
            await self._kill(process)
            raise
        finally:
            if self._process is process:
                self._process = None

        if process.returncode != 0:
            detail = (stderr or b"").decode("utf-8", errors="ignore").strip()[:200]
            raise PlaybackError(f"{self._name} exited with {process.returncode}: {detail}")

    async def stop(self) -> None:
        self._stops += 1
        process, self._process = self._process, None
        if process is not None and process.returncode is None:
            await self._kill(process)
            logger.debug("speech_engine_stopped", engine=self._name)

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()


class SubprocessAudioPlayer(_SubprocessEngine):
    """Pipes rendered audio into a player such as ``ffplay -``."""

    def __init__(self, settings: SpeechSettings | None = None) -> None:
        super().__init__("player")
        self._command = list((settings or SpeechSettings()).player_command)

    async def play(self, audio: bytes, *, speed: float = 1.0) -> None:
        argv = list(self._command)
        tempo = max(0.5, min(2.0, speed))
        if tempo != 1.0 and argv and argv[0].endswith("ffplay"):
            argv[1:1] = ["-af", f"atempo={tempo}"]
        await self._run(argv, stdin=audio)


class SubprocessSpeechSynthesizer(_SubprocessEngine):
    """Speaks text with a local engine such as ``espeak-ng``."""

    # espeak-ng speaks at roughly 175 words per minute at rate 1.0.
    BASE_WORDS_PER_MINUTE = 175

    def __init__(self, settings: SpeechSettings | None = None) -> None:
        super().__init__("fallback")
        self._command = list((settings or SpeechSettings()).fallback_command)

    async def speak(self, text: str, *, rate: float, language: str) -> None:
        words_per_minute = str(int(self.BASE_WORDS_PER_MINUTE * rate))
        voice = language.split("-", 1)[0].lower()
        await self._run([*self._command, "-v", voice, "-s", words_per_minute, text])


__all__ = [
    "AudioPlayer",
    "FallbackSynthesizer",
    "PlaybackError",
    "SubprocessAudioPlayer",
    "SubprocessSpeechSynthesizer",
]
