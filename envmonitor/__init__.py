"""Flask backend for an indoor environment monitor: accounts, devices and signed uploads."""

__version__ = "0.1.0"