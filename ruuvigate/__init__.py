"""RuuviGate: relay RuuviTag advertisements from hcidump to an HTTP collector."""

__version__ = "0.3.0"
