"""fieldforms: report validation for community health data collection."""

__version__ = "0.1.0"
