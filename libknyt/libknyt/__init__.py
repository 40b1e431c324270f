"""libknyt: a content-addressable version control core."""

from .objects import Blob, Commit, ObjectKind, Tree, TreeRecord, TreeRecordType

__all__ = ['Blob', 'Commit', 'ObjectKind', 'Tree', 'TreeRecord', 'TreeRecordType']
