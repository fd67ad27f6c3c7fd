"""
Write pipeline and document validation.
"""

from .lifecycle import LifecycleEngine, apply_transforms, as_update_document, fill_defaults
from .validation import DocumentValidator, expand_paths

__all__ = [
    "DocumentValidator",
    "LifecycleEngine",
    "apply_transforms",
    "as_update_document",
    "expand_paths",
    "fill_defaults",
]
