"""In-memory LRU of rendered premium audio."""

from __future__ import annotations

from collections import OrderedDict


class AudioCache:
    """Keeps the most recently used ``capacity`` clips, keyed by voice and text prefix."""

    def __init__(self, capacity: int = 50, *, key_chars: int = 200) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.key_chars = key_chars
        self._entries: OrderedDict[str, bytes] = OrderedDict()

    def key(self, voice_id: str, text: str) -> str:
        return f"{voice_id}:{text[: self.key_chars]}"

    def get(self, voice_id: str, text: str) -> bytes | None:
        key = self.key(voice_id, text)
        audio = self._entries.get(key)
        if audio is not None:
            self._entries.move_to_end(key)
        return audio

    def put(self, voice_id: str, text: str, audio: bytes) -> None:
        key = self.key(voice_id, text)
        self._entries[key] = audio
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


__all__ = ["AudioCache"]
