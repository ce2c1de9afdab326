"""Background BLE listener that keeps the adapter scanning for hcidump."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from bleak import BleakScanner as BleakScannerLib
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from ..models import ListenerMode

logger = logging.getLogger(__name__)

HCITOOL_COMMAND = ["hcitool", "lescan", "--duplicates", "--passive"]

POWER_OFF_COMMAND = ["bluetoothctl", "power", "off"]
POWER_ON_COMMAND = ["bluetoothctl", "power", "on"]
HCICONFIG_RESET_COMMAND = ["hciconfig", "hci0", "reset"]


class BleListener:
    """Keeps the local radio in a receiving state.

    The listener produces no data of its own: hcidump sees the advertisements
    as a side effect of the scan. It shares the event loop with the capture
    pipeline, so every external command is awaited, never run blocking.
    """

    # BlueZ often silently stops after ~30-60s
    RESTART_INTERVAL_SECONDS = 60

    # Watchdog timeout - force restart if no advertisement seen
    WATCHDOG_TIMEOUT_SECONDS = 45

    CHECK_INTERVAL_SECONDS = 10

    # Pause between a proactive stop and the next start
    CYCLE_PAUSE_SECONDS = 1

    # Pause after an error before trying again
    ERROR_PAUSE_SECONDS = 3

    # Time the adapter needs after power off / power on / reset
    POWER_SETTLE_SECONDS = 1
    RESET_SETTLE_SECONDS = 2

    COMMAND_TIMEOUT_SECONDS = 5

    # Timeout for stop() operation - don't let it hang forever
    STOP_TIMEOUT_SECONDS = 10

    def __init__(
        self,
        mode: ListenerMode = ListenerMode.BLEAK,
        hcitool_command: Optional[list[str]] = None,
    ) -> None:
        self._mode = mode
        self._hcitool_command = hcitool_command or HCITOOL_COMMAND
        self._scanner: Optional[BleakScannerLib] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._running = False
        self._last_data_time: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        """Check if listener is running."""
        return self._running

    def _detection_callback(
        self,
        device: BLEDevice,
        advertisement_data: AdvertisementData,
    ) -> None:
        """Note that the radio is still delivering advertisements."""
        self._last_data_time = datetime.now()

    async def _create_scanner(self) -> BleakScannerLib:
        """Create a fresh scanner instance."""
        return BleakScannerLib(
            detection_callback=self._detection_callback,
        )

    async def _stop_scanner_safe(self) -> None:
        """Stop scanner with timeout protection."""
        if self._scanner is None:
            return

        try:
            await asyncio.wait_for(
                self._scanner.stop(),
                timeout=self.STOP_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning("Scanner stop() timed out after %ds", self.STOP_TIMEOUT_SECONDS)
        except Exception as e:
            logger.debug("Error stopping scanner: %s", e)
        finally:
            self._scanner = None

    async def _stop_process_safe(self) -> None:
        """Terminate hcitool if it is still running."""
        if self._process is None:
            return

        try:
            if self._process.returncode is None:
                self._process.terminate()
                await asyncio.wait_for(self._process.wait(), timeout=self.STOP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("hcitool did not exit, killing")
            self._process.kill()
        except ProcessLookupError:
            pass
        finally:
            self._process = None

    async def _run_command(self, command: list[str]) -> tuple[int, str]:
        """Run an adapter command without blocking the event loop.

        Returns (returncode, stderr). Raises asyncio.TimeoutError or OSError.
        """
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.COMMAND_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise
        return process.returncode, stderr.decode(errors="replace").strip()

    async def _reset_bluetooth_adapter(self) -> None:
        """Power cycle the adapter to recover from a stuck state.

        Uses bluetoothctl (D-Bus), falling back to hciconfig.
        """
        try:
            await self._run_command(POWER_OFF_COMMAND)
            await asyncio.sleep(self.POWER_SETTLE_SECONDS)
            await self._run_command(POWER_ON_COMMAND)
            await asyncio.sleep(self.RESET_SETTLE_SECONDS)

            logger.info("Bluetooth adapter power cycled via bluetoothctl")
            return
        except (asyncio.TimeoutError, OSError) as e:
            logger.debug("bluetoothctl failed: %r", e)

        try:
            returncode, stderr = await self._run_command(HCICONFIG_RESET_COMMAND)
            if returncode == 0:
                logger.info("Bluetooth adapter reset via hciconfig")
                await asyncio.sleep(self.RESET_SETTLE_SECONDS)
            else:
                logger.debug("hciconfig reset failed: %s", stderr)
        except (asyncio.TimeoutError, OSError) as e:
            logger.debug("hciconfig failed: %r", e)

    def _should_restart(self) -> tuple[bool, str]:
        """Check if scanner should be restarted.

        Returns (should_restart, reason).
        """
        if self._last_data_time:
            elapsed = (datetime.now() - self._last_data_time).total_seconds()
            if elapsed > self.WATCHDOG_TIMEOUT_SECONDS:
                return True, f"no advertisements for {elapsed:.0f}s"

        return False, ""

    async def stop(self) -> None:
        """Stop listening."""
        self._running = False
        await self._stop_scanner_safe()
        await self._stop_process_safe()

    async def run(self) -> None:
        """Run the listener until cancelled."""
        if self._mode == ListenerMode.NONE:
            logger.info("Background listener disabled")
            return
        if self._mode == ListenerMode.HCITOOL:
            await self._run_hcitool()
        else:
            await self._run_bleak()

    async def _run_hcitool(self) -> None:
        """Keep hcitool lescan running, restarting it if it exits."""
        self._running = True
        while self._running:
            try:
                self._process = await asyncio.create_subprocess_exec(
                    *self._hcitool_command,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
                logger.info("hcitool lescan started (pid %d)", self._process.pid)
                returncode = await self._process.wait()
                self._process = None
                logger.warning("hcitool lescan exited with code %d, restarting", returncode)
                await self._reset_bluetooth_adapter()
                await asyncio.sleep(self.ERROR_PAUSE_SECONDS)

            except asyncio.CancelledError:
                logger.info("BLE listener cancelled")
                await self._stop_process_safe()
                raise

            except OSError as e:
                logger.error("Cannot start hcitool: %s", e)
                self._running = False
                return

    async def _run_bleak(self) -> None:
        """Run the bleak scanner with periodic restarts.

        Restarts every RESTART_INTERVAL_SECONDS to work around BlueZ
        issues. The adapter is only power cycled after a watchdog timeout
        or an error, since a reset leaves the radio deaf for seconds.
        """
        restart_count = 0
        reset_needed = False
        self._running = True

        while self._running:
            try:
                restart_count += 1

                if reset_needed:
                    await self._reset_bluetooth_adapter()
                    reset_needed = False

                self._scanner = await self._create_scanner()
                await self._scanner.start()
                self._last_data_time = datetime.now()

                logger.info("BLE listener running (cycle %d)", restart_count)

                cycle_start = datetime.now()

                while self._running:
                    await asyncio.sleep(self.CHECK_INTERVAL_SECONDS)

                    cycle_elapsed = (datetime.now() - cycle_start).total_seconds()
                    if cycle_elapsed >= self.RESTART_INTERVAL_SECONDS:
                        logger.debug("Proactive restart after %.0fs", cycle_elapsed)
                        break

                    should_restart, reason = self._should_restart()
                    if should_restart:
                        logger.warning("Watchdog restart: %s", reason)
                        reset_needed = True
                        break

                await self._stop_scanner_safe()
                await asyncio.sleep(self.CYCLE_PAUSE_SECONDS)

            except asyncio.CancelledError:
                logger.info("BLE listener cancelled")
                await self._stop_scanner_safe()
                raise

            except Exception as e:
                logger.error("BLE listener error: %s", e)
                await self._stop_scanner_safe()
                reset_needed = True
                await asyncio.sleep(self.ERROR_PAUSE_SECONDS)
