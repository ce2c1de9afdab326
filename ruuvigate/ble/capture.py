"""Line sources for raw HCI captures: hcidump or a saved capture file."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)

HCIDUMP_COMMAND = ["hcidump", "--raw"]

# Timeout for terminating hcidump on shutdown
STOP_TIMEOUT_SECONDS = 5


class CaptureError(Exception):
    """The capture stream could not be opened."""


class HcidumpCapture:
    """Runs hcidump --raw and yields its output line by line."""

    def __init__(self, command: Optional[list[str]] = None) -> None:
        self._command = command or HCIDUMP_COMMAND
        self._process: Optional[asyncio.subprocess.Process] = None

    async def start(self) -> None:
        """Spawn the capture process."""
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self._command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise CaptureError(f"Cannot start {self._command[0]}: {e}") from e
        logger.info("Capture started: %s (pid %d)", " ".join(self._command), self._process.pid)

    async def stop(self) -> None:
        """Terminate the capture process."""
        if self._process is None:
            return

        if self._process.returncode is None:
            try:
                self._process.terminate()
                await asyncio.wait_for(self._process.wait(), timeout=STOP_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("%s did not exit, killing", self._command[0])
                self._process.kill()
                await self._process.wait()
            except ProcessLookupError:
                pass
        self._process = None
        logger.info("Capture stopped")

    async def lines(self) -> AsyncIterator[str]:
        """Yield decoded output lines until the process exits.

        hcidump never ends on its own, so its exit raises CaptureError.
        """
        if self._process is None:
            await self.start()

        while True:
            raw = await self._process.stdout.readline()
            if not raw:
                break
            yield raw.decode("ascii", errors="replace").rstrip("\r\n")

        returncode = await self._process.wait()
        raise CaptureError(f"{self._command[0]} exited with code {returncode}")


class FileCapture:
    """Replays a saved hcidump --raw capture from a file or stdin ("-")."""

    def __init__(self, path: Path) -> None:
        self._path = path

    async def start(self) -> None:
        """Check that the capture file is readable."""
        if str(self._path) == "-":
            return
        if not self._path.is_file():
            raise CaptureError(f"Capture file not found: {self._path}")

    async def stop(self) -> None:
        pass

    async def lines(self) -> AsyncIterator[str]:
        """Yield lines without blocking the event loop on file reads."""
        if str(self._path) == "-":
            stream = sys.stdin
            close = False
        else:
            try:
                stream = open(self._path, "r", encoding="ascii", errors="replace")
            except OSError as e:
                raise CaptureError(f"Cannot open capture file {self._path}: {e}") from e
            close = True

        try:
            while True:
                line = await asyncio.to_thread(stream.readline)
                if not line:
                    break
                yield line.rstrip("\r\n")
        finally:
            if close:
                stream.close()
        logger.info("End of capture file %s", self._path)
