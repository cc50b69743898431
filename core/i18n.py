from __future__ import annotations

import gettext
import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

_current_locale: ContextVar[str] = ContextVar("current_locale", default="en")
_translators: dict[str, gettext.NullTranslations] = {}
_logger = logging.getLogger(__name__)

LOCALE_DIR = Path(__file__).resolve().parent.parent / "locales"


def set_locale(locale: str) -> None:
    """Set current locale (fallback to 'en')."""
    _current_locale.set(locale or "en")


def get_locale() -> str:
    """Get current locale (default 'en')."""
    return _current_locale.get()


def _get_translator(locale: str) -> gettext.NullTranslations:
    tr = _translators.get(locale)
    if tr is not None:
        return tr
    try:
        tr = gettext.translation(
            domain="messages",
            localedir=str(LOCALE_DIR),
            languages=[locale],
            fallback=True,
        )
    except OSError:
        tr = gettext.NullTranslations()
    _translators[locale] = tr
    return tr


def t(msgid: str, default: Optional[str] = None, **params) -> str:
    """Translate msgid using current locale and format with params.

    If the catalog is missing or the key is not translated, returns
    ``default`` when given, otherwise the msgid itself.
    """
    text = _get_translator(get_locale()).gettext(msgid)
    if text == msgid and default is not None:
        text = default
    if not params:
        return text
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError) as exc:
        # Fall back to unformatted text rather than breaking the caller
        _logger.warning("i18n_format_failed msgid=%s params=%s error=%s", msgid, list(params.keys()), exc)
        return text
