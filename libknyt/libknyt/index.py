"""The staging index: a persisted, flat mapping from paths to blob digests."""

import json
from dataclasses import dataclass
from pathlib import Path

from .exceptions import IndexMissingError, RepositoryError, RepositoryIOError
from .ref import HashRef, is_hash


@dataclass(frozen=True)
class IndexEntry:
    """A staged file: its working-directory-relative POSIX path and blob digest."""

    path: str
    digest: HashRef

    def to_dict(self) -> dict[str, str]:
        return {'path': self.path, 'digest': str(self.digest)}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> 'IndexEntry':
        """Build an entry from its serialized form.

        :raises ValueError: If the record lacks a path or has an invalid digest."""
        path = data.get('path')
        digest = data.get('digest')
        if not path or not isinstance(path, str):
            msg = f'Index record has no path: {data!r}'
            raise ValueError(msg)
        if not isinstance(digest, str) or not is_hash(digest):
            msg = f'Index record for {path} has an invalid digest: {digest!r}'
            raise ValueError(msg)
        return cls(path, HashRef(digest))


def read_index(index_file: Path) -> list[IndexEntry]:
    """Read the staging index.

    :param index_file: The index file of the repository.
    :return: The staged entries in their stored order.
    :raises IndexMissingError: If the index file does not exist.
    :raises RepositoryError: If the index file is malformed."""
    if not index_file.exists():
        msg = f'Index file {index_file} does not exist'
        raise IndexMissingError(msg)

    try:
        records = json.loads(index_file.read_text(encoding='utf-8'))
    except OSError as e:
        msg = f'Error reading index {index_file}'
        raise RepositoryIOError(msg) from e
    except json.JSONDecodeError as e:
        msg = f'Index {index_file} is not valid JSON'
        raise RepositoryError(msg) from e

    if not isinstance(records, list):
        msg = f'Index {index_file} must hold a list of records'
        raise RepositoryError(msg)

    try:
        return [IndexEntry.from_dict(record) for record in records]
    except (ValueError, AttributeError) as e:
        msg = f'Index {index_file} holds a malformed record'
        raise RepositoryError(msg) from e


def write_index(index_file: Path, entries: list[IndexEntry]) -> None:
    """Persist the staging index.

    :raises RepositoryIOError: If the index file cannot be written."""
    try:
        index_file.write_text(json.dumps([entry.to_dict() for entry in entries], indent=2), encoding='utf-8')
    except OSError as e:
        msg = f'Error writing index {index_file}'
        raise RepositoryIOError(msg) from e


def upsert_entry(entries: list[IndexEntry], entry: IndexEntry) -> list[IndexEntry]:
    """Replace the entry with the same path, or append the entry if the path is new."""
    for i, existing in enumerate(entries):
        if existing.path == entry.path:
            entries[i] = entry
            return entries

    entries.append(entry)
    return entries


def remove_entry(entries: list[IndexEntry], path: str) -> list[IndexEntry]:
    """Return the entries without the one staged at ``path``."""
    return [entry for entry in entries if entry.path != path]
