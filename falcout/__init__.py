"""Alert output channels, fan-out, event drop monitoring, logging and a watchdog."""

__version__ = "0.1.0"