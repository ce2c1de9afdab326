"""Sequential feed -> decode -> resolve -> deliver pipeline."""

from __future__ import annotations

import logging
from typing import AsyncIterable, Optional

from .ble.assembler import FrameAssembler
from .ble.parsers import BaseParser
from .forwarder import Forwarder
from .models import DeliveryResult, Measurement
from .resolver import TagNameResolver

logger = logging.getLogger(__name__)


class Pipeline:
    """Processes capture lines one at a time.

    Each completed frame is decoded, labelled and delivered before the
    next line is consumed.
    """

    def __init__(
        self,
        parser: BaseParser,
        resolver: TagNameResolver,
        forwarder: Forwarder,
        assembler: Optional[FrameAssembler] = None,
    ) -> None:
        self._parser = parser
        self._resolver = resolver
        self._forwarder = forwarder
        self._assembler = assembler or FrameAssembler()
        self.measurements = 0
        self.discarded = 0
        self.delivery_failures = 0

    def decode(self, frame: bytes) -> Optional[Measurement]:
        """Decode a frame and attach the configured label."""
        measurement = self._parser.parse(frame)
        if measurement is None:
            self.discarded += 1
            return None

        measurement = measurement.with_name(self._resolver.resolve(measurement.mac))
        self.measurements += 1
        logger.debug(
            "%s %s %.2f %.2f %.2f %d",
            measurement.name,
            measurement.mac,
            measurement.temperature,
            measurement.humidity,
            measurement.pressure,
            measurement.movement_counter,
        )
        return measurement

    async def process_line(self, line: str) -> Optional[DeliveryResult]:
        """Feed one line; returns the delivery result if a measurement was sent."""
        frame = self._assembler.feed(line)
        if frame is None:
            return None

        measurement = self.decode(frame)
        if measurement is None:
            return None

        result = await self._forwarder.deliver(measurement)
        if not result.ok:
            self.delivery_failures += 1
        return result

    async def run(self, lines: AsyncIterable[str]) -> None:
        """Consume lines until the source is exhausted."""
        async for line in lines:
            try:
                await self.process_line(line)
            except Exception:
                logger.exception("Error processing capture line: %r", line)

        logger.info(
            "Capture ended: %d frames, %d measurements, %d discarded, %d delivery failures",
            self._assembler.frames_emitted,
            self.measurements,
            self.discarded,
            self.delivery_failures,
        )
