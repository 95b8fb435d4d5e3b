"""
Search Subsystem

HTTP routes for suggestions, related politicians and fuzzy search.
"""

from .factory import create_search_module
from .routes import create_search_routes

__all__ = ['create_search_module', 'create_search_routes']
