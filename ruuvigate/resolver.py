"""Maps tag MAC addresses to operator-assigned labels."""

from __future__ import annotations

from .models import UNNAMED, TagConfig


class TagNameResolver:
    """Read-only lookup over the configured tag table.

    The table is loaded before capture starts and never written afterwards.
    """

    def __init__(self, tags: list[TagConfig]) -> None:
        self._tags = tags

    def resolve(self, mac: str) -> str:
        """Return the label for a MAC, or "unnamed" if it is not configured."""
        mac = mac.upper()
        for tag in self._tags:
            if tag.mac == mac:
                return tag.name
        return UNNAMED
