"""
Shared helpers.
"""

from .ids import ID_FIELD, convert_filter_ids, to_object_id

__all__ = ["ID_FIELD", "convert_filter_ids", "to_object_id"]
