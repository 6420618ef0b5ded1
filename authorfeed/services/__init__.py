"""
AuthorFeed Services
===================

Shared service layer used by the CLI and the REST layer.
"""

from .catalog_service import CatalogService, PostPage

__all__ = [
    'CatalogService',
    'PostPage',
]
