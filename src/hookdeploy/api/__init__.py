"""REST API - webhook endpoint and management routes."""

from hookdeploy.api.app import create_app

__all__ = ["create_app"]
