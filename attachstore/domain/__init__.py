"""
Domain layer package housing the attachment value types.
"""

from .models import StoredObject

__all__ = ["StoredObject"]
