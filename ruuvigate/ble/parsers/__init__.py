"""HCI frame parsers."""

from .base import BaseParser
from .ruuvi import RuuviParser

__all__ = ["BaseParser", "RuuviParser"]
