"""Base parser class for raw HCI advertisement frames."""

from abc import ABC, abstractmethod
from typing import Optional

from ...models import Measurement


class BaseParser(ABC):
    """Abstract base class for raw advertisement frame parsers."""

    @abstractmethod
    def parse(self, frame: bytes) -> Optional[Measurement]:
        """
        Decode a reassembled frame and return a Measurement if valid.

        Args:
            frame: Bytes of one HCI event as reassembled from the capture

        Returns:
            Measurement if successfully decoded, None otherwise
        """
        pass

    @abstractmethod
    def can_parse(self, frame: bytes) -> bool:
        """
        Check if this parser can handle the given frame.

        Args:
            frame: Bytes of one HCI event as reassembled from the capture

        Returns:
            True if this parser can handle the data
        """
        pass
