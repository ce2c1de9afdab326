"""RuuviTag Data Format 5 parser for raw HCI LE advertising reports."""

import struct
from datetime import datetime
from typing import Optional

from ...models import Measurement, PressureUnit
from .base import BaseParser

# Ruuvi Innovations company id 0x0499, little-endian on the wire
RUUVI_SIGNATURE = b"\x99\x04"

# Shortest HCI event that carries a complete DF5 payload plus trailing RSSI
MIN_FRAME_LENGTH = 46

DATA_FORMAT = 5

# Offsets within the reassembled HCI event
SIGNATURE_OFFSET = 19
TEMPERATURE_OFFSET = 22
HUMIDITY_OFFSET = 24
PRESSURE_OFFSET = 26
ACCEL_X_OFFSET = 28
ACCEL_Y_OFFSET = 30
ACCEL_Z_OFFSET = 32
POWER_INFO_OFFSET = 34
MOVEMENT_OFFSET = 36
SEQUENCE_OFFSET = 37
MAC_OFFSET = 39
RSSI_OFFSET = 45

MAC_LENGTH = 6


def read_u16(frame: bytes, offset: int) -> int:
    return struct.unpack_from(">H", frame, offset)[0]


def read_i16(frame: bytes, offset: int) -> int:
    return struct.unpack_from(">h", frame, offset)[0]


def format_mac(frame: bytes, offset: int = MAC_OFFSET) -> str:
    """Render six bytes as XX:XX:XX:XX:XX:XX, keeping their order."""
    return ":".join(f"{b:02X}" for b in frame[offset:offset + MAC_LENGTH])


def decode_temperature(frame: bytes) -> float:
    return read_u16(frame, TEMPERATURE_OFFSET) * 0.005


def decode_humidity(frame: bytes) -> float:
    return read_u16(frame, HUMIDITY_OFFSET) * 0.0025


def decode_pressure(frame: bytes, unit: PressureUnit = PressureUnit.PA) -> float:
    """Pressure with the 50000 Pa offset applied, in the requested unit."""
    pascals = read_u16(frame, PRESSURE_OFFSET) + 50000
    if unit == PressureUnit.HPA:
        return pascals / 100.0
    return float(pascals)


def decode_acceleration(frame: bytes, offset: int) -> float:
    """Acceleration as a fraction of standard gravity."""
    return read_i16(frame, offset) / 32767.0


def decode_battery_voltage(frame: bytes) -> float:
    # Upper 11 bits of power info, millivolts above 1600
    return (read_u16(frame, POWER_INFO_OFFSET) >> 5) / 1000.0 + 1.6


def decode_tx_power(frame: bytes) -> int:
    # Lower 5 bits of power info, 2 dBm steps from -40 dBm
    return (read_u16(frame, POWER_INFO_OFFSET) & 0x1F) * 2 - 40


def decode_rssi(frame: bytes) -> int:
    return struct.unpack_from(">b", frame, RSSI_OFFSET)[0]


class RuuviParser(BaseParser):
    """Parser for RuuviTag Data Format 5 (RAWv2) in hcidump HCI events.

    Only the length and the manufacturer signature are validated; every
    field offset lies inside the minimum frame length.
    """

    def __init__(self, pressure_unit: PressureUnit = PressureUnit.PA) -> None:
        self._pressure_unit = pressure_unit

    @property
    def pressure_unit(self) -> PressureUnit:
        return self._pressure_unit

    def can_parse(self, frame: bytes) -> bool:
        """Check for a DF5-sized frame with the Ruuvi signature."""
        if len(frame) < MIN_FRAME_LENGTH:
            return False
        return frame[SIGNATURE_OFFSET:SIGNATURE_OFFSET + 2] == RUUVI_SIGNATURE

    def parse(self, frame: bytes) -> Optional[Measurement]:
        """Decode a frame into a Measurement, or None if it is not one."""
        if not self.can_parse(frame):
            return None

        return Measurement(
            mac=format_mac(frame),
            timestamp=datetime.now().astimezone(),
            temperature=decode_temperature(frame),
            humidity=decode_humidity(frame),
            pressure=decode_pressure(frame, self._pressure_unit),
            acceleration_x=decode_acceleration(frame, ACCEL_X_OFFSET),
            acceleration_y=decode_acceleration(frame, ACCEL_Y_OFFSET),
            acceleration_z=decode_acceleration(frame, ACCEL_Z_OFFSET),
            battery_voltage=decode_battery_voltage(frame),
            tx_power=decode_tx_power(frame),
            movement_counter=frame[MOVEMENT_OFFSET],
            measurement_sequence=read_u16(frame, SEQUENCE_OFFSET),
            rssi=decode_rssi(frame),
            data_format=DATA_FORMAT,
        )
