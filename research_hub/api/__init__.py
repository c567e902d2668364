"""HTTP adapter."""

from research_hub.api.app import STATUS_BY_REASON, create_app

__all__ = ["STATUS_BY_REASON", "create_app"]
