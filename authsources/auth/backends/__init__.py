"""
Backend adapters for authsources.

Each adapter verifies credentials against one external system. Adapters
are selected by the source's config variant (see core/configs.py), so
importing this package does not pull in every client library.
"""

from .base import BackendAdapter, ExternalProfile

__all__ = [
    "BackendAdapter",
    "ExternalProfile",
]
