"""HTTP API for operating the monitor."""

from cafewatch.api.app import create_app

__all__ = ["create_app"]
