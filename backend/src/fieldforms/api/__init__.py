"""HTTP API for report validation."""

from fieldforms.api.app import app

__all__ = ["app"]
