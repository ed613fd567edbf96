"""API package: provides FastAPI dependencies and route definitions for the application."""

from .dependencies import get_app_settings, get_household_id, get_import_service, get_repository  # noqa: F401
from .routes import router  # noqa: F401
