"""Alt-account correlation and device-ban enforcement."""

__version__ = "0.1.0"
