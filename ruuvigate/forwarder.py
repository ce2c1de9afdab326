"""Forwards decoded measurements to the collector over HTTP."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Optional

import aiohttp

from . import __version__
from .models import AppConfig, DeliveryResult, DeliveryStatus, Envelope, Measurement

logger = logging.getLogger(__name__)

USER_AGENT = f"RuuviGate/{__version__}"


def build_tag_payload(measurement: Measurement) -> dict:
    """Build the JSON record for one tag."""
    return {
        "accelX": measurement.acceleration_x,
        "accelY": measurement.acceleration_y,
        "accelZ": measurement.acceleration_z,
        "connectable": False,
        "dataFormat": measurement.data_format,
        "humidity": measurement.humidity,
        "humidityOffset": 0.0,
        "id": measurement.mac,
        "measurementSequenceNumber": measurement.measurement_sequence,
        "movementCounter": measurement.movement_counter,
        "name": measurement.name,
        "pressure": measurement.pressure,
        "rssi": measurement.rssi,
        "temperature": measurement.temperature,
        "txPower": measurement.tx_power,
        "updateAt": measurement.timestamp.isoformat(),
        "voltage": measurement.battery_voltage,
    }


def build_envelope_payload(envelope: Envelope) -> dict:
    """Build the JSON document posted to the collector.

    "gateway" is left out entirely when no identifier is configured.
    """
    output: dict = {
        "tags": [build_tag_payload(m) for m in envelope.tags],
    }
    if envelope.gateway:
        output["gateway"] = envelope.gateway
    output["batteryLevel"] = envelope.battery_level
    output["time"] = envelope.time.isoformat()
    return output


class Forwarder:
    """Posts one measurement per request to the configured collector.

    Delivery is best-effort: a failed attempt is logged and reported in the
    returned DeliveryResult, never retried.
    """

    def __init__(self, config: AppConfig) -> None:
        self._url = config.collector_url
        self._gateway_id = config.gateway_id
        self._timeout = config.timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def enabled(self) -> bool:
        """Check if a collector URL is configured."""
        return bool(self._url)

    async def start(self) -> None:
        """Initialize the HTTP session."""
        if self._session is None and self.enabled:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def serialize(self, measurement: Measurement) -> bytes:
        """Wrap a measurement in an envelope and encode it as JSON."""
        envelope = Envelope(
            tags=[measurement],
            time=datetime.now().astimezone(),
            gateway=self._gateway_id,
        )
        return json.dumps(build_envelope_payload(envelope), allow_nan=False).encode("utf-8")

    async def deliver(self, measurement: Measurement) -> DeliveryResult:
        """Send one measurement to the collector."""
        if not self.enabled:
            return DeliveryResult(DeliveryStatus.DISABLED)

        try:
            body = self.serialize(measurement)
        except (TypeError, ValueError) as e:
            logger.warning("Could not serialize measurement from %s: %s", measurement.mac, e)
            return DeliveryResult(DeliveryStatus.FAILED, error=str(e))

        logger.debug("Payload: %s", body.decode("utf-8"))

        if not self._session:
            await self.start()

        try:
            async with self._session.post(
                self._url,
                data=body,
                headers={"Content-Type": "application/json"},
            ) as response:
                logger.debug("Status code %d", response.status)
                if not 200 <= response.status < 300:
                    logger.warning(
                        "Collector rejected %s (%s): HTTP %d",
                        measurement.name,
                        measurement.mac,
                        response.status,
                    )
                    return DeliveryResult(
                        DeliveryStatus.FAILED,
                        http_status=response.status,
                        error=f"HTTP {response.status}",
                    )
                return DeliveryResult(DeliveryStatus.SENT, http_status=response.status)

        except asyncio.TimeoutError:
            logger.warning("Collector timeout after %.0fs", self._timeout)
            return DeliveryResult(DeliveryStatus.FAILED, error="timeout")
        except (aiohttp.ClientError, OSError) as e:
            logger.warning("Collector unreachable: %s", e)
            return DeliveryResult(DeliveryStatus.FAILED, error=str(e))
