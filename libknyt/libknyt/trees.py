"""Building nested trees from flat path maps, and flattening/restoring them."""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .constants import MAX_TREE_DEPTH
from .exceptions import RepositoryIOError
from .index import IndexEntry
from .objects import Tree, TreeRecord, TreeRecordType
from .plumbing import load_blob, load_tree, save_tree
from .ref import HashRef

logger = logging.getLogger(__name__)


@dataclass
class FileNode:
    """A file leaf of a nested tree."""

    digest: str
    type: TreeRecordType = TreeRecordType.BLOB


@dataclass
class DirNode:
    """A directory of a nested tree, mapping entry names to nodes."""

    children: dict[str, 'Node'] = field(default_factory=dict)


Node = FileNode | DirNode


def split_path(path: str) -> tuple[str, ...]:
    """Split a repository-relative POSIX path into its segments.

    :raises ValueError: If the path is empty, absolute, escapes the root or is nested too deeply."""
    pure = PurePosixPath(path)
    parts = pure.parts
    if not parts or pure.is_absolute() or any(part in ('.', '..') for part in parts):
        msg = f'Invalid repository path: {path!r}'
        raise ValueError(msg)
    if len(parts) > MAX_TREE_DEPTH:
        msg = f'Path {path!r} is nested deeper than {MAX_TREE_DEPTH} levels'
        raise ValueError(msg)
    return parts


def build_nested(items: Iterable[tuple[str, TreeRecordType, str]]) -> DirNode:
    """Insert ``(path, type, digest)`` items into a nested directory structure.

    :raises ValueError: If a path is used both as a file and as a directory."""
    root = DirNode()

    for path, record_type, digest in items:
        *dirs, leaf = split_path(path)

        current = root
        for part in dirs:
            child = current.children.setdefault(part, DirNode())
            if not isinstance(child, DirNode):
                msg = f'Cannot place {path}: {part} is a file'
                raise ValueError(msg)
            current = child

        if isinstance(current.children.get(leaf), DirNode):
            msg = f'Cannot place {path}: it is already a directory'
            raise ValueError(msg)
        current.children[leaf] = FileNode(digest, record_type)

    return root


def write_nested(objects_dir: str | Path, root: DirNode) -> HashRef:
    """Store a nested structure as Tree objects, subtrees before their parents.

    :return: The digest of the root tree."""
    hashes: dict[int, HashRef] = {}
    stack: list[tuple[DirNode, bool]] = [(root, False)]

    while stack:
        node, children_done = stack.pop()

        if not children_done:
            stack.append((node, True))
            stack.extend((child, False) for child in node.children.values() if isinstance(child, DirNode))
            continue

        records: dict[str, TreeRecord] = {}
        for name, child in node.children.items():
            if isinstance(child, DirNode):
                records[name] = TreeRecord(TreeRecordType.TREE, hashes[id(child)], name)
            else:
                records[name] = TreeRecord(child.type, child.digest, name)

        hashes[id(node)] = save_tree(objects_dir, Tree(records))

    return hashes[id(root)]


def build_tree(objects_dir: str | Path, entries: Iterable[IndexEntry]) -> HashRef:
    """Build and store the tree of a staging index.

    :param objects_dir: The objects directory of the repository.
    :param entries: The staged entries.
    :return: The digest of the root tree."""
    return write_nested(objects_dir, build_nested((e.path, TreeRecordType.BLOB, e.digest) for e in entries))


def write_flat_tree(objects_dir: str | Path, flat: dict[str, TreeRecord]) -> HashRef:
    """Build and store a tree from a flattened ``path -> record`` map."""
    return write_nested(objects_dir, build_nested((path, r.type, r.hash) for path, r in flat.items()))


def flatten_tree(objects_dir: str | Path, tree_hash: str) -> dict[str, TreeRecord]:
    """Walk a tree and all its subtrees into a map from file path to file record.

    :param objects_dir: The objects directory of the repository.
    :param tree_hash: The digest of the root tree.
    :return: A mapping from POSIX path to the file's TreeRecord.
    :raises ValueError: If the tree is nested deeper than the allowed depth."""
    flat: dict[str, TreeRecord] = {}
    queue: deque[tuple[str, str, int]] = deque([(tree_hash, '', 0)])

    while queue:
        current_hash, prefix, depth = queue.popleft()
        if depth > MAX_TREE_DEPTH:
            msg = f'Tree {tree_hash} is nested deeper than {MAX_TREE_DEPTH} levels'
            raise ValueError(msg)

        for name, record in load_tree(objects_dir, current_hash).records.items():
            path = f'{prefix}/{name}' if prefix else name
            if record.type == TreeRecordType.TREE:
                queue.append((record.hash, path, depth + 1))
            else:
                flat[path] = record

    return flat


def restore_tree(objects_dir: str | Path, tree_hash: str, target_dir: Path) -> dict[str, TreeRecord]:
    """Write every file of a tree into a directory, creating parents and overwriting existing files.

    Files in ``target_dir`` that are not part of the tree are left untouched.

    :return: The flattened tree that was restored.
    :raises RepositoryIOError: If a file cannot be written, e.g. because a directory is in its way."""
    flat = flatten_tree(objects_dir, tree_hash)

    for path in sorted(flat):
        destination = target_dir / path
        content = load_blob(objects_dir, flat[path].hash)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(content)
        except OSError as e:
            msg = f'Error restoring {path}'
            raise RepositoryIOError(msg) from e
        logger.debug('Restored %s', path)

    return flat
