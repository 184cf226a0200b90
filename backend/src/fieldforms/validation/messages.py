"""Localized validation messages.

A validation declares either inline messages::

    message:
      - content: Patient ID must be unique.
        locale: en
      - content: L'ID du patient doit etre unique.
        locale: fr

or a ``translation_key`` looked up in the translations catalogue
(``{locale: {key: text}}``).
"""

from typing import Any

from fieldforms.validation.types import ValidationSpec

DEFAULT_LOCALE = "en"


def get_locale(doc: dict[str, Any], default_locale: str | None = None) -> str:
    """Resolve the locale a report should be answered in.

    Resolution order: ``doc["locale"]``, ``doc["sms_message"]["locale"]``,
    the configured default, then "en".
    """
    locale = doc.get("locale")
    if locale:
        return str(locale)

    sms_message = doc.get("sms_message")
    if isinstance(sms_message, dict) and sms_message.get("locale"):
        return str(sms_message["locale"])

    return default_locale or DEFAULT_LOCALE


def translate(
    key: str,
    locale: str,
    translations: dict[str, dict[str, str]] | None = None,
    default_locale: str = DEFAULT_LOCALE,
) -> str:
    """Look up a translation key, falling back to the default locale, then the key."""
    translations = translations or {}
    for candidate in (locale, default_locale):
        text = translations.get(candidate, {}).get(key)
        if text:
            return text
    return key


def get_message(
    spec: ValidationSpec,
    locale: str,
    translations: dict[str, dict[str, str]] | None = None,
    default_locale: str = DEFAULT_LOCALE,
) -> str | None:
    """Return the message for a validation in the requested locale.

    Inline messages fall back to the default locale, then to the first entry.
    """
    if spec.translation_key:
        return translate(spec.translation_key, locale, translations, default_locale)

    if not spec.message:
        return None

    for candidate in (locale, default_locale):
        for entry in spec.message:
            if entry.get("locale") == candidate:
                return entry.get("content")

    return spec.message[0].get("content")
