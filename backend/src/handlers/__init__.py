"""Lambda handlers for the Feedback Hub API."""

from .api_handler import api_handler

__all__ = ["api_handler"]
