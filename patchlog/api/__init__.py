"""HTTP surface for patchlog (FastAPI)."""

from .config import ApiSettings
from .http_app import create_app

__all__ = ["ApiSettings", "create_app"]
