"""SafeZone API: authentication, sessions and danger zone reports."""

__version__ = "0.1.0"
