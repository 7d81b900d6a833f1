"""RegFlow - regulatory document staging service for device-registration projects."""

__version__ = "0.1.0"
