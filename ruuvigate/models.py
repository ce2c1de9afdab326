"""Data models for RuuviGate."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional

# Label used for tags that are not listed in the configuration
UNNAMED = "unnamed"


class PressureUnit(Enum):
    """Unit used for the pressure field of a measurement."""

    PA = "pa"
    HPA = "hpa"


class ListenerMode(Enum):
    """How the radio is kept in scanning state while hcidump captures."""

    BLEAK = "bleak"
    HCITOOL = "hcitool"
    NONE = "none"


class DeliveryStatus(Enum):
    """Outcome of a single delivery attempt."""

    SENT = "sent"
    DISABLED = "disabled"
    FAILED = "failed"


@dataclass
class TagConfig:
    """Operator-assigned label for one tag."""

    mac: str
    name: str

    def __post_init__(self) -> None:
        self.mac = self.mac.upper()


@dataclass(frozen=True)
class Measurement:
    """One decoded RuuviTag Data Format 5 broadcast."""

    mac: str
    timestamp: datetime
    temperature: float
    humidity: float
    pressure: float
    acceleration_x: float
    acceleration_y: float
    acceleration_z: float
    battery_voltage: float
    tx_power: int
    movement_counter: int
    measurement_sequence: int
    rssi: int
    data_format: int = 5
    name: str = UNNAMED

    def with_name(self, name: str) -> Measurement:
        """Return a copy of this measurement carrying the given label."""
        return replace(self, name=name)


@dataclass
class Envelope:
    """Wire wrapper for measurements sent in one request."""

    tags: list[Measurement]
    time: datetime
    gateway: Optional[str] = None
    battery_level: int = 0


@dataclass
class DeliveryResult:
    """Result of Forwarder.deliver()."""

    status: DeliveryStatus
    http_status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True unless the attempt failed."""
        return self.status != DeliveryStatus.FAILED


@dataclass
class AppConfig:
    """Application configuration."""

    collector_url: Optional[str] = None
    gateway_id: Optional[str] = None
    pressure_unit: PressureUnit = PressureUnit.PA
    timeout: float = 10.0
    listener: ListenerMode = ListenerMode.BLEAK
    tags: list[TagConfig] = field(default_factory=list)

    def get_tag_macs(self) -> set[str]:
        """Get all configured tag MAC addresses."""
        return {t.mac for t in self.tags}
