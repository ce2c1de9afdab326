"""Main application coordinator."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional, Union

from .ble.capture import FileCapture, HcidumpCapture
from .ble.listener import BleListener
from .ble.parsers import RuuviParser
from .forwarder import Forwarder
from .models import AppConfig, ListenerMode
from .pipeline import Pipeline
from .resolver import TagNameResolver

logger = logging.getLogger(__name__)


class RuuviGateApp:
    """Runs the background listener and the capture pipeline."""

    def __init__(
        self,
        config: AppConfig,
        input_path: Optional[Path] = None,
    ) -> None:
        self._config = config
        self._input_path = input_path
        self._capture: Optional[Union[HcidumpCapture, FileCapture]] = None
        self._listener: Optional[BleListener] = None
        self._forwarder: Optional[Forwarder] = None
        self._pipeline: Optional[Pipeline] = None
        self._listener_task: Optional[asyncio.Task] = None
        self._pipeline_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start all components.

        Raises CaptureError if the capture stream cannot be opened.
        """
        logger.info("Starting RuuviGate...")

        self._forwarder = Forwarder(self._config)
        await self._forwarder.start()
        if self._forwarder.enabled:
            logger.info("Forwarding to %s", self._config.collector_url)

        self._pipeline = Pipeline(
            parser=RuuviParser(self._config.pressure_unit),
            resolver=TagNameResolver(self._config.tags),
            forwarder=self._forwarder,
        )
        logger.info("%d tag labels configured", len(self._config.get_tag_macs()))

        if self._input_path is not None:
            self._capture = FileCapture(self._input_path)
        else:
            self._capture = HcidumpCapture()
        await self._capture.start()

        # Replaying a saved capture does not need the radio
        if self._input_path is None and self._config.listener != ListenerMode.NONE:
            self._listener = BleListener(self._config.listener)
            self._listener_task = asyncio.create_task(
                self._listener.run(),
                name="ble_listener",
            )

        self._pipeline_task = asyncio.create_task(
            self._pipeline.run(self._capture.lines()),
            name="pipeline",
        )
        logger.info("RuuviGate started successfully")

    async def stop(self) -> None:
        """Stop all components."""
        logger.info("Stopping RuuviGate...")

        for task in (self._pipeline_task, self._listener_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._pipeline_task = None
        self._listener_task = None

        if self._listener:
            await self._listener.stop()

        if self._capture:
            await self._capture.stop()

        if self._forwarder:
            await self._forwarder.stop()

        logger.info("RuuviGate stopped")

    async def run(self) -> None:
        """Run until the capture ends or a shutdown signal arrives."""
        loop = asyncio.get_running_loop()
        shutdown = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown.set)

        try:
            await self.start()

            shutdown_wait = asyncio.create_task(shutdown.wait(), name="shutdown")
            done, _ = await asyncio.wait(
                {self._pipeline_task, shutdown_wait},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if shutdown_wait in done:
                logger.info("Shutdown signal received")
            else:
                shutdown_wait.cancel()
                exc = self._pipeline_task.exception()
                if exc:
                    raise exc

        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await self.stop()
