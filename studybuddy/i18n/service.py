"""File-based i18n for user-facing entitlement messages."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from studybuddy.services.exceptions import ServiceError


class I18nService:
    def __init__(self, *, locales_path: str | Path | None = None, default_locale: str = "en") -> None:
        self.locales_path = Path(locales_path or Path(__file__).with_name("locales"))
        self.default_locale = default_locale

    def gettext(self, key: str, *, locale: str | None = None, **kwargs: Any) -> str:
        loc = (locale or self.default_locale).lower()
        text = self._lookup(loc, key)
        if text is None and loc != self.default_locale:
            text = self._lookup(self.default_locale, key)
        if text is None:
            text = key
        if not kwargs:
            return text
        try:
            return text.format(**kwargs)
        except (KeyError, IndexError):
            return text

    def error_message(self, error: ServiceError, *, locale: str | None = None) -> str:
        return self.gettext(error.code, locale=locale, **error.params)

    def negotiate(self, accept_language: str | None) -> str:
        """Pick the first locale from an Accept-Language header we have a table for."""

        for part in (accept_language or "").split(","):
            tag = part.split(";", 1)[0].strip().lower()
            if not tag:
                continue
            for candidate in (tag, tag.split("-", 1)[0]):
                if self._load_locale(candidate):
                    return candidate
        return self.default_locale

    @lru_cache(maxsize=16)
    def _load_locale(self, locale: str) -> dict[str, str]:
        file_path = self.locales_path / f"{locale}.json"
        if not file_path.exists():
            return {}
        with file_path.open("r", encoding="utf-8") as fp:
            return json.load(fp)

    def _lookup(self, locale: str, key: str) -> str | None:
        table = self._load_locale(locale)
        return table.get(key)


__all__ = ["I18nService"]
