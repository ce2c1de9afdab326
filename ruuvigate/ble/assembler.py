"""Reassembles hcidump --raw output into per-advertisement byte frames."""

from __future__ import annotations

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# hcidump prefixes the first line of every incoming HCI packet with ">"
BOUNDARY_MARKER = ">"

# One byte: one or two hex digits, nothing else
_HEX_BYTE = re.compile(r"[0-9A-Fa-f]{1,2}")


def parse_hex_tokens(line: str) -> tuple[bytes, int]:
    """Parse whitespace-separated hex byte tokens.

    Returns the parsed bytes and the number of tokens that were skipped.
    """
    values = bytearray()
    skipped = 0
    for token in line.split():
        if _HEX_BYTE.fullmatch(token):
            values.append(int(token, 16))
        else:
            skipped += 1
    return bytes(values), skipped


class FrameAssembler:
    """Accumulates hex tokens into frames delimited by boundary lines.

    A frame is emitted only when the next boundary line arrives, so the
    last frame of a capture stays pending until more input is seen.
    """

    def __init__(self, marker: str = BOUNDARY_MARKER) -> None:
        self._marker = marker
        self._buffer = bytearray()
        self.frames_emitted = 0
        self.tokens_skipped = 0

    @property
    def pending(self) -> bytes:
        """Bytes accumulated since the last boundary."""
        return bytes(self._buffer)

    def reset(self) -> None:
        """Drop any partially accumulated frame."""
        self._buffer.clear()

    def feed(self, line: str) -> Optional[bytes]:
        """Consume one capture line, returning a completed frame if any."""
        frame: Optional[bytes] = None

        if line.startswith(self._marker):
            if self._buffer:
                frame = bytes(self._buffer)
                self.frames_emitted += 1
            self._buffer.clear()

        values, skipped = parse_hex_tokens(line)
        self._buffer.extend(values)
        self.tokens_skipped += skipped

        return frame
