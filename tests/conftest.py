"""Shared fixtures: synthetic hcidump frames and captures."""

import struct

import pytest

# HCI LE advertising report header up to the manufacturer data, as printed
# by hcidump --raw for a RuuviTag (event, subevent, report, address, AD
# flags, manufacturer AD length/type)
HEADER = bytes([
    0x04, 0x3E, 0x2B, 0x02, 0x01, 0x03, 0x01,
    0xFF, 0xEE, 0xDD, 0xCC, 0xBB, 0xAA,
    0x1F, 0x02, 0x01, 0x06, 0x1B, 0xFF,
])


def build_frame(
    temperature=0x010C,
    humidity=20000,
    pressure=50000,
    accel=(-1000, 20, 1000),
    power=0x0C60,
    movement=66,
    sequence=500,
    mac=(0xAA, 0xBB, 0xCC, 0xDD, 0xEE, 0xFF),
    rssi=-60,
    signature=(0x99, 0x04),
):
    frame = bytearray(HEADER)
    frame += bytes(signature)
    frame.append(0x05)
    frame += struct.pack(">HHH", temperature, humidity, pressure)
    frame += struct.pack(">hhh", *accel)
    frame += struct.pack(">HBH", power, movement, sequence)
    frame += bytes(mac)
    frame += struct.pack(">b", rssi)
    assert len(frame) == 46
    return bytes(frame)


def to_hcidump_lines(frame, width=20):
    """Format a frame the way hcidump --raw prints it."""
    chunks = [frame[i:i + width] for i in range(0, len(frame), width)]
    lines = []
    for i, chunk in enumerate(chunks):
        prefix = "> " if i == 0 else "  "
        lines.append(prefix + " ".join(f"{b:02X}" for b in chunk))
    return lines


@pytest.fixture
def make_frame():
    return build_frame


@pytest.fixture
def df5_frame():
    return build_frame()


@pytest.fixture
def hcidump_lines():
    return to_hcidump_lines


@pytest.fixture
def capture_text():
    """A capture with a non-Ruuvi event, two tags and a closing boundary."""
    lines = [
        "HCI sniffer - Bluetooth packet analyzer ver 5.50",
        "device: hci0 snap_len: 1500 filter: 0xffffffff",
        "< 01 0B 20 07 01 10 00 10 00 00 00",
        "> 04 0E 04 01 0B 20 00",
    ]
    lines += to_hcidump_lines(build_frame())
    lines += to_hcidump_lines(build_frame(mac=(0x11, 0x22, 0x33, 0x44, 0x55, 0x66), sequence=7))
    lines.append("> 04 0F 04 00 01 0C 20")
    return "\n".join(lines) + "\n"
