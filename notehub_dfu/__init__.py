"""Deploy outboard host firmware to Notecard devices through the Notehub API."""

__version__ = "1.0.0"
