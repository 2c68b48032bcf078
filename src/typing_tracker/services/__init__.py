"""Service modules for the Typing Tracker."""

from .api_client import ApiClient

__all__ = [
    'ApiClient',
]
