"""Tests for delivering measurements to the collector."""

import asyncio
import json
import logging
from datetime import datetime, timezone

from aiohttp import web
from aiohttp.test_utils import TestServer as CollectorServer

from ruuvigate.forwarder import Forwarder, build_envelope_payload
from ruuvigate.models import AppConfig, DeliveryStatus, Envelope, Measurement

TAG_KEYS = {
    "accelX", "accelY", "accelZ", "connectable", "dataFormat", "humidity",
    "humidityOffset", "id", "measurementSequenceNumber", "movementCounter",
    "name", "pressure", "rssi", "temperature", "txPower", "updateAt", "voltage",
}


def make_measurement(**overrides):
    fields = dict(
        mac="AA:BB:CC:DD:EE:FF",
        timestamp=datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc),
        temperature=21.5,
        humidity=45.0,
        pressure=100325.0,
        acceleration_x=0.0,
        acceleration_y=-0.5,
        acceleration_z=1.0,
        battery_voltage=2.9,
        tx_power=4,
        movement_counter=3,
        measurement_sequence=1234,
        rssi=-70,
        name="Sauna",
    )
    fields.update(overrides)
    return Measurement(**fields)


async def run_with_collector(handler, config_kwargs, measurement):
    """Deliver one measurement to an in-process collector."""
    app = web.Application()
    app.router.add_post("/tags", handler)
    async with CollectorServer(app) as server:
        config = AppConfig(collector_url=str(server.make_url("/tags")), **config_kwargs)
        forwarder = Forwarder(config)
        await forwarder.start()
        try:
            return await forwarder.deliver(measurement)
        finally:
            await forwarder.stop()


def test_envelope_payload_shape():
    envelope = Envelope(
        tags=[make_measurement()],
        time=datetime(2026, 10, 18, 12, 0, 5, tzinfo=timezone.utc),
    )
    payload = build_envelope_payload(envelope)
    assert set(payload) == {"tags", "batteryLevel", "time"}
    assert payload["batteryLevel"] == 0
    assert payload["time"] == "2026-10-18T12:00:05+00:00"
    tag = payload["tags"][0]
    assert set(tag) == TAG_KEYS
    assert tag["id"] == "AA:BB:CC:DD:EE:FF"
    assert tag["name"] == "Sauna"
    assert tag["dataFormat"] == 5
    assert tag["connectable"] is False
    assert tag["measurementSequenceNumber"] == 1234
    assert tag["updateAt"] == "2026-10-18T12:00:00+00:00"


def test_envelope_payload_with_gateway():
    envelope = Envelope(tags=[make_measurement()], time=datetime.now(), gateway="cabin")
    assert build_envelope_payload(envelope)["gateway"] == "cabin"


def test_serialize_single_measurement():
    forwarder = Forwarder(AppConfig(collector_url="http://collector", gateway_id="cabin"))
    body = json.loads(forwarder.serialize(make_measurement()))
    assert len(body["tags"]) == 1
    assert body["gateway"] == "cabin"


def test_disabled_without_collector():
    forwarder = Forwarder(AppConfig())
    assert not forwarder.enabled
    result = asyncio.run(forwarder.deliver(make_measurement()))
    assert result.status == DeliveryStatus.DISABLED
    assert result.ok


def test_delivery_posts_json():
    received = []

    async def handler(request):
        received.append((request.content_type, await request.json()))
        return web.Response(status=200)

    result = asyncio.run(run_with_collector(handler, {"gateway_id": "cabin"}, make_measurement()))

    assert result.status == DeliveryStatus.SENT
    assert result.http_status == 200
    assert result.ok
    content_type, body = received[0]
    assert content_type == "application/json"
    assert body["gateway"] == "cabin"
    assert body["tags"][0]["temperature"] == 21.5
    assert body["tags"][0]["rssi"] == -70


def test_non_success_status_is_failure():
    async def handler(request):
        return web.Response(status=503)

    result = asyncio.run(run_with_collector(handler, {}, make_measurement()))
    assert result.status == DeliveryStatus.FAILED
    assert result.http_status == 503
    assert not result.ok


def test_unreachable_collector_is_failure():
    forwarder = Forwarder(AppConfig(collector_url="http://127.0.0.1:1/tags", timeout=2))

    async def deliver():
        try:
            return await forwarder.deliver(make_measurement())
        finally:
            await forwarder.stop()

    result = asyncio.run(deliver())
    assert result.status == DeliveryStatus.FAILED
    assert result.error


def test_slow_collector_times_out():
    async def handler(request):
        await asyncio.sleep(1)
        return web.Response(status=200)

    result = asyncio.run(run_with_collector(handler, {"timeout": 0.2}, make_measurement()))
    assert result.status == DeliveryStatus.FAILED


def test_unserializable_measurement_is_failure():
    forwarder = Forwarder(AppConfig(collector_url="http://127.0.0.1:1/tags"))
    result = asyncio.run(forwarder.deliver(make_measurement(temperature=float("nan"))))
    assert result.status == DeliveryStatus.FAILED


def test_payload_and_status_logged_at_debug(caplog):
    caplog.set_level(logging.DEBUG, logger="ruuvigate.forwarder")

    async def handler(request):
        return web.Response(status=202)

    result = asyncio.run(run_with_collector(handler, {}, make_measurement()))

    assert result.status == DeliveryStatus.SENT
    messages = [r.getMessage() for r in caplog.records if r.name == "ruuvigate.forwarder"]
    payloads = [m for m in messages if m.startswith("Payload: ")]
    assert len(payloads) == 1
    assert '"id": "AA:BB:CC:DD:EE:FF"' in payloads[0]
    assert "Status code 202" in messages


def test_nothing_logged_at_info(caplog):
    caplog.set_level(logging.INFO, logger="ruuvigate.forwarder")

    async def handler(request):
        return web.Response(status=200)

    asyncio.run(run_with_collector(handler, {}, make_measurement()))
    assert not [r for r in caplog.records if r.name == "ruuvigate.forwarder"]
