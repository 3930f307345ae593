"""
Operations package for Document editing and review.

This package contains the classes behind the Document's editing, tracking,
resolution and batch surfaces, kept out of the Document class itself.
"""

from .batch import BatchOperations
from .interception import TrackChangesInterceptor
from .native import NativeEditing
from .resolution import ResolutionEngine
from .spans import RangeEdit, SpanSurgery

__all__ = [
    "BatchOperations",
    "NativeEditing",
    "RangeEdit",
    "ResolutionEngine",
    "SpanSurgery",
    "TrackChangesInterceptor",
]
