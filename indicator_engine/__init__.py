"""Technical indicator computation engine."""

__version__ = "0.1.0"
