"""Sanitizing log filter that redacts browsing payloads before they reach handlers.

Activity records carry URLs and window titles, which routinely contain
document names, search terms, and account identifiers.  Classification
and registry code logs ``key=value`` pairs; this filter masks the values
of the sensitive keys so they never reach log output.
"""

from __future__ import annotations

import logging
import re
from typing import Final

_SENSITIVE_KEYS: Final[tuple[str, ...]] = (
    "full_url",
    "url",
    "window_title",
    "title",
)

_REDACTED: Final[str] = "[REDACTED]"

_SENSITIVE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"\b(?P<key>"
    + "|".join(re.escape(k) for k in _SENSITIVE_KEYS)
    + r")\s*[=:]\s*(?P<value>\"[^\"]*\"|'[^']*'|\S+)",
    re.IGNORECASE,
)

# Scheme URLs that show up outside a key, e.g. inside a model repr.
_BARE_URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"\b[a-z][a-z0-9+.-]*://[^\s'\"]+", re.IGNORECASE)


def redact_message(message: str) -> str:
    """Mask URL and title values in *message*.

    Values of the sensitive keys (``url=...``, ``title: ...``) are
    replaced first, then any remaining ``scheme://`` URL.
    """
    message = _SENSITIVE_PATTERN.sub(lambda m: f"{m.group('key')}={_REDACTED}", message)
    return _BARE_URL_PATTERN.sub(_REDACTED, message)


class SanitizingFilter(logging.Filter):
    """A :class:`logging.Filter` that rewrites log records to strip URLs and titles."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = redact_message(record.getMessage())
            record.args = None
        else:
            record.msg = redact_message(str(record.msg))
        return True


def install_sanitizing_filter(
    logger: logging.Logger | None = None,
    *,
    handler_level: bool = False,
) -> SanitizingFilter:
    """Attach a :class:`SanitizingFilter` to *logger* (or the root logger).

    Args:
        logger: Target logger.  Defaults to the root logger if ``None``.
        handler_level: If ``True``, install on each handler of *logger*
            instead of the logger itself.  Handler-level filters also
            see records propagated from child loggers.

    Returns:
        The filter instance that was installed (useful for later removal).
    """
    filt = SanitizingFilter()
    target = logger or logging.getLogger()

    if handler_level:
        for handler in target.handlers:
            handler.addFilter(filt)
    else:
        target.addFilter(filt)

    return filt


def configure_logging(verbose: bool = False) -> None:
    """Set up root logging for CLI use with URL/title redaction."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    install_sanitizing_filter(handler_level=True)
