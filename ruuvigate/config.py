"""Configuration loading from YAML.

Legacy settings.json files are accepted as well, since JSON is valid YAML:
"gateway" is read as the collector URL and tag rows may use "id" for the MAC.
"""

import logging
from pathlib import Path

import yaml

from .models import AppConfig, ListenerMode, PressureUnit, TagConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def load_config(config_path: Path) -> AppConfig:
    """Load configuration from a YAML file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data:
        data = {}

    return parse_config(data)


def parse_config(data: dict) -> AppConfig:
    """Build an AppConfig from already loaded configuration data."""
    tags = []
    for tag_data in data.get("tags") or []:
        try:
            mac = tag_data.get("mac") or tag_data["id"]
            if not isinstance(mac, str):
                # Unquoted MACs of digits may load as YAML sexagesimal ints
                raise ValueError("MAC must be a quoted string")
            tag = TagConfig(mac=mac, name=str(tag_data["name"]))
            tags.append(tag)
            logger.debug("Loaded tag: %s (%s)", tag.name, tag.mac)
        except (KeyError, AttributeError, ValueError) as e:
            logger.warning("Invalid tag configuration: %s - %s", tag_data, e)

    collector_url = data.get("collector_url") or data.get("gateway") or None
    if not collector_url:
        logger.warning("No collector_url configured, delivery disabled")

    pressure_unit = PressureUnit.PA
    if "pressure_unit" in data:
        try:
            pressure_unit = PressureUnit(str(data["pressure_unit"]).lower())
        except ValueError:
            logger.warning("Invalid pressure_unit value: %s", data["pressure_unit"])

    timeout = DEFAULT_TIMEOUT
    if data.get("timeout") is not None:
        try:
            timeout = float(data["timeout"])
            if timeout <= 0:
                raise ValueError("timeout must be positive")
        except (ValueError, TypeError):
            logger.warning("Invalid timeout value: %s", data["timeout"])
            timeout = DEFAULT_TIMEOUT

    listener = ListenerMode.BLEAK
    if "listener" in data:
        try:
            listener = ListenerMode(str(data["listener"]).lower())
        except ValueError:
            logger.warning("Invalid listener value: %s", data["listener"])

    config = AppConfig(
        collector_url=collector_url,
        gateway_id=data.get("gateway_id") or None,
        pressure_unit=pressure_unit,
        timeout=timeout,
        listener=listener,
        tags=tags,
    )
    logger.info("Loaded configuration with %d tags", len(tags))
    return config
