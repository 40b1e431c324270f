"""Merge helpers for libknyt."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from merge3 import Merge3

from .constants import CONFLICT_END, CONFLICT_MARKERS, CONFLICT_SEPARATOR, CONFLICT_START, CURRENT_LABEL, MERGING_LABEL
from .exceptions import CorruptObjectError, MergeError, RepositoryIOError
from .objects import TreeRecord
from .plumbing import decode_text, load_blob, load_commit, save_blob
from .ref import HashRef, is_hash

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Represents the output of a 3-way merge."""

    tree_hash: HashRef
    conflicts: list[str]
    commit_ref: HashRef | None = None
    base_ref: HashRef | None = None


@dataclass(frozen=True)
class PendingMerge:
    """The state recorded while a conflicted merge awaits resolution."""

    tree_hash: HashRef
    target_commit: HashRef | None = None


@dataclass
class FlatMerge:
    """A merged ``path -> record`` map and the paths that conflicted."""

    records: dict[str, TreeRecord] = field(default_factory=dict)
    conflicts: list[str] = field(default_factory=list)


def find_merge_base(objects_dir: str | Path, hash1: str, hash2: str) -> HashRef | None:
    """Find a common ancestor of two commits.

    Every ancestor of ``hash1`` is collected first. The ancestors of ``hash2`` are then walked
    depth-first, parents in the order they are listed in each commit, and the first one that is
    also an ancestor of ``hash1`` is returned. In criss-cross histories this is a common ancestor
    but not necessarily the lowest one.

    :param objects_dir: The objects directory of the repository.
    :param hash1: The first commit.
    :param hash2: The second commit.
    :return: The common ancestor, or None if the histories are unrelated."""
    ancestors: set[str] = set()
    for commit_hash in _walk_ancestors(objects_dir, hash1):
        ancestors.add(commit_hash)

    for commit_hash in _walk_ancestors(objects_dir, hash2):
        if commit_hash in ancestors:
            return HashRef(commit_hash)

    return None


def _walk_ancestors(objects_dir: str | Path, start: str) -> Iterable[str]:
    visited: set[str] = set()
    stack = [start]

    while stack:
        commit_hash = stack.pop()
        if commit_hash in visited:
            continue
        visited.add(commit_hash)
        yield commit_hash

        # Reversed so the first listed parent is explored first
        stack.extend(reversed(load_commit(objects_dir, commit_hash).parents))


def conflict_text(current: str, target: str) -> str:
    """Render both sides of a conflicted file between conflict markers."""
    return (f'{CONFLICT_START} {CURRENT_LABEL}\n{current}\n'
            f'{CONFLICT_SEPARATOR}\n{target}\n'
            f'{CONFLICT_END} {MERGING_LABEL}\n')


def has_conflict_markers(content: bytes) -> bool:
    """Check whether content holds any conflict marker."""
    return any(marker.encode() in content for marker in CONFLICT_MARKERS)


def _blob_text(objects_dir: str | Path, blob_hash: str) -> str:
    content = load_blob(objects_dir, blob_hash)
    try:
        return decode_text(content)
    except UnicodeDecodeError:
        return content.decode('utf-8', errors='replace')


def merge_blob_text(
    objects_dir: str | Path,
    base_hash: str | None,
    ours_hash: str,
    theirs_hash: str,
) -> HashRef | None:
    """Merge three versions of a text blob line by line using merge3.

    :param objects_dir: The objects directory of the repository.
    :param base_hash: Hash of the common ancestor blob (None if the file has no ancestor version).
    :param ours_hash: Hash of our version of the blob.
    :param theirs_hash: Hash of their version of the blob.
    :return: The hash of the merged blob, or None if the versions conflict or are not text."""
    try:
        base_text = decode_text(load_blob(objects_dir, base_hash)) if base_hash else ''
        ours_text = decode_text(load_blob(objects_dir, ours_hash))
        theirs_text = decode_text(load_blob(objects_dir, theirs_hash))
    except UnicodeDecodeError:
        return None

    merger = Merge3(base_text.splitlines(keepends=True),
                    ours_text.splitlines(keepends=True),
                    theirs_text.splitlines(keepends=True))

    merged_lines: list[str] = []
    for group in merger.merge_groups():
        if group[0] == 'conflict':
            return None
        merged_lines.extend(group[1])

    return save_blob(objects_dir, ''.join(merged_lines).encode('utf-8')).hash


def merge_flat_trees(
    objects_dir: str | Path,
    base: dict[str, TreeRecord],
    ours: dict[str, TreeRecord],
    theirs: dict[str, TreeRecord],
    line_merge: bool = False,
) -> FlatMerge:
    """Merge two flattened trees against their flattened merge base.

    A path present on one side only is kept. A path changed on one side only takes that side.
    A path changed differently on both sides is a conflict: its merged content holds both
    versions between conflict markers, with the mode of our side.

    :param objects_dir: The objects directory of the repository.
    :param base: The flattened merge base tree (empty if there is none).
    :param ours: The flattened current tree.
    :param theirs: The flattened tree being merged in.
    :param line_merge: Try a line-level merge of both-sides changes before declaring a conflict.
    :return: The merged records and the conflicted paths, both in path order.
    :raises MergeError: If a path is a file on one side and a directory on the other."""
    result = FlatMerge()

    for path in sorted(set(ours) | set(theirs)):
        our_record = ours.get(path)
        their_record = theirs.get(path)
        base_record = base.get(path)

        if their_record is None:
            result.records[path] = our_record
            continue
        if our_record is None:
            result.records[path] = their_record
            continue
        if our_record.hash == their_record.hash:
            result.records[path] = our_record
            continue
        if base_record is not None and our_record.hash == base_record.hash:
            result.records[path] = their_record
            continue
        if base_record is not None and their_record.hash == base_record.hash:
            result.records[path] = our_record
            continue

        if line_merge:
            base_hash = base_record.hash if base_record else None
            merged_hash = merge_blob_text(objects_dir, base_hash, our_record.hash, their_record.hash)
            if merged_hash is not None:
                result.records[path] = TreeRecord(our_record.type, merged_hash, our_record.name)
                continue

        content = conflict_text(_blob_text(objects_dir, our_record.hash), _blob_text(objects_dir, their_record.hash))
        blob = save_blob(objects_dir, content.encode('utf-8'))
        result.records[path] = TreeRecord(our_record.type, blob.hash, our_record.name)
        result.conflicts.append(path)

    clashes = _file_directory_clashes(result.records)
    if clashes:
        msg = f'Cannot merge: paths are a file on one side and a directory on the other: {", ".join(clashes)}'
        raise MergeError(msg)

    if result.conflicts:
        logger.warning('Merge conflicts in %d file(s): %s', len(result.conflicts), ', '.join(result.conflicts))

    return result


def _file_directory_clashes(records: dict[str, TreeRecord]) -> list[str]:
    clashes: set[str] = set()
    for path in records:
        for parent in PurePosixPath(path).parents:
            if str(parent) in records:
                clashes.add(str(parent))
    return sorted(clashes)


def read_pending_merge(merge_head_file: Path) -> PendingMerge | None:
    """Read the pending merge marker.

    The first line holds the merged tree digest, an optional second line the merged-in commit.

    :return: The pending merge, or None if no merge is pending.
    :raises CorruptObjectError: If the marker holds an invalid digest."""
    if not merge_head_file.exists():
        return None

    lines = merge_head_file.read_text().split()
    if not lines or not all(is_hash(line) for line in lines[:2]):
        msg = f'Invalid pending merge marker {merge_head_file}'
        raise CorruptObjectError(msg)

    target_commit = HashRef(lines[1]) if len(lines) > 1 else None
    return PendingMerge(HashRef(lines[0]), target_commit)


def write_pending_merge(merge_head_file: Path, pending: PendingMerge) -> None:
    lines = [pending.tree_hash]
    if pending.target_commit:
        lines.append(pending.target_commit)

    try:
        merge_head_file.write_text('\n'.join(lines) + '\n')
    except OSError as e:
        msg = f'Error writing {merge_head_file}'
        raise RepositoryIOError(msg) from e


def find_conflicted_files(working_dir: Path, paths: Iterable[str]) -> list[str]:
    """Return the paths whose content holds conflict markers, sorted.

    :param working_dir: The directory the paths are relative to.
    :param paths: The POSIX paths to scan."""
    conflicted: list[str] = []

    for path in paths:
        try:
            content = (working_dir / path).read_bytes()
        except OSError as e:
            msg = f'Error reading {path}'
            raise RepositoryIOError(msg) from e
        if has_conflict_markers(content):
            conflicted.append(path)

    return sorted(conflicted)
