"""SOS power: historical token balance reconstruction and scoring."""

__version__ = "0.1.0"
