"""HCI capture, frame assembly and parsing."""

from .assembler import FrameAssembler
from .capture import CaptureError, FileCapture, HcidumpCapture
from .listener import BleListener

__all__ = ["BleListener", "CaptureError", "FileCapture", "FrameAssembler", "HcidumpCapture"]
