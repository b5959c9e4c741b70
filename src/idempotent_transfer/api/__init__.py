"""HTTP surface of the transfer service (FastAPI)."""

from idempotent_transfer.api.app import ServiceComponents, create_app

__all__ = ["ServiceComponents", "create_app"]
