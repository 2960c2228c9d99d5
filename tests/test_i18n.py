"""Tests for the I18nService translation lookup and fallback."""

from __future__ import annotations

from pathlib import Path

from studybuddy.i18n import I18nService
from studybuddy.services.exceptions import PendingRequestExists, UpgradeNotAllowed


def test_gettext_returns_translated_string(tmp_path: Path):
    locale_dir = tmp_path / "locales"
    locale_dir.mkdir()
    (locale_dir / "en.json").write_text('{"greet": "Hello {name}"}', encoding="utf-8")
    service = I18nService(locales_path=locale_dir, default_locale="en")

    text = service.gettext("greet", name="World")
    assert text == "Hello World"


def test_gettext_falls_back_to_default(tmp_path: Path):
    locale_dir = tmp_path / "locales"
    locale_dir.mkdir()
    (locale_dir / "en.json").write_text('{"greet": "Hello"}', encoding="utf-8")
    service = I18nService(locales_path=locale_dir, default_locale="en")

    assert service.gettext("greet", locale="es") == "Hello"
    assert service.gettext("missing.key") == "missing.key"


def test_gettext_keeps_template_when_params_missing(tmp_path: Path):
    locale_dir = tmp_path / "locales"
    locale_dir.mkdir()
    (locale_dir / "en.json").write_text('{"greet": "Hello {name}"}', encoding="utf-8")
    service = I18nService(locales_path=locale_dir)

    assert service.gettext("greet", other="x") == "Hello {name}"


def test_negotiate_prefers_supported_language():
    service = I18nService()

    assert service.negotiate("hi-IN,en;q=0.8") == "hi"
    assert service.negotiate("fr-FR,de") == "en"
    assert service.negotiate(None) == "en"


def test_error_message_uses_code_and_params():
    service = I18nService()

    assert (
        service.error_message(PendingRequestExists())
        == "You already have a pending upgrade request."
    )
    error = UpgradeNotAllowed("nope", code="upgrade.already_on_plan", plan="pro")
    assert service.error_message(error) == "You already have the pro plan."


def test_hindi_table_falls_back_to_english_for_missing_keys():
    service = I18nService()

    assert service.gettext("upgrade.rejected", locale="hi") == "Request rejected."
    assert service.gettext("student.not_found", locale="hi") == "छात्र नहीं मिला।"
