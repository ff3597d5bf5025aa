"""Read-only HTTP API over the cached datasets."""

from ticker_spine.api.app import create_app

__all__ = ["create_app"]
