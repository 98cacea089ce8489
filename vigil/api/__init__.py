"""Vigil admin REST API."""

from vigil.api.app import create_app

__all__ = ["create_app"]
