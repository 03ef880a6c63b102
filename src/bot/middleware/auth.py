"""Sender allowlist for inbound messages."""

import re
from collections.abc import Iterable

import structlog

logger = structlog.get_logger()

_NON_DIGITS = re.compile(r"\D")


def normalize_sender(sender: str) -> str:
    """Canonical form used for allowlist comparison.

    Numeric ids and phone numbers keep only their digits
    (``+62 812-3456`` -> ``628123456``); handles are lowercased without
    a leading ``@``.
    """
    value = str(sender or "").strip()
    digits = _NON_DIGITS.sub("", value)
    if digits and not re.search(r"[A-Za-z]", value):
        return digits
    return value.lstrip("@").lower()


class SenderAllowlist:
    """Decides whether a sender may talk to the bot.

    An empty allowlist admits everyone.
    """

    def __init__(self, allowed: Iterable[str] = ()) -> None:
        self._allowed = {normalize_sender(s) for s in allowed if str(s).strip()}

    @property
    def is_open(self) -> bool:
        return not self._allowed

    def is_allowed(self, sender: str) -> bool:
        if self.is_open:
            return True
        allowed = normalize_sender(sender) in self._allowed
        if not allowed:
            logger.warning("Message from unauthorized sender ignored", sender=sender)
        return allowed
