"""Object value types and their byte encodings."""

from dataclasses import dataclass, field
from enum import Enum

from .constants import DEFAULT_AUTHOR, DEFAULT_TZ_OFFSET, FILE_MODE, HASH_RAW_LENGTH, TREE_MODE


class ObjectKind(Enum):
    """The kind written in an object's header."""

    BLOB = 'blob'
    TREE = 'tree'
    COMMIT = 'commit'


class TreeRecordType(Enum):
    """The mode of a tree entry."""

    BLOB = FILE_MODE
    TREE = TREE_MODE

    @property
    def mode(self) -> str:
        return self.value


@dataclass(frozen=True)
class TreeRecord:
    """A single entry of a tree: a file or a subtree."""

    type: TreeRecordType
    hash: str
    name: str


@dataclass(frozen=True)
class Blob:
    """A stored file content."""

    hash: str
    size: int


@dataclass
class Tree:
    """A directory listing keyed by entry name."""

    records: dict[str, TreeRecord] = field(default_factory=dict)

    def serialize(self) -> bytes:
        """Encode the tree as the concatenation of ``<mode> <name>\\0<raw digest>`` entries.

        Entries are written in name order so equal listings always encode the same way."""
        parts: list[bytes] = []
        for name in sorted(self.records):
            record = self.records[name]
            parts.append(f'{record.type.mode} {name}'.encode() + b'\x00' + bytes.fromhex(record.hash))
        return b''.join(parts)

    @classmethod
    def parse(cls, payload: bytes) -> 'Tree':
        """Decode a tree payload.

        :param payload: The raw tree payload without its header.
        :return: The decoded Tree.
        :raises ValueError: If an entry is truncated or has an unknown mode."""
        records: dict[str, TreeRecord] = {}
        pos = 0
        while pos < len(payload):
            space = payload.find(b' ', pos)
            if space == -1:
                msg = f'Truncated tree entry at offset {pos}'
                raise ValueError(msg)
            nul = payload.find(b'\x00', space)
            if nul == -1:
                msg = f'Unterminated tree entry name at offset {space}'
                raise ValueError(msg)
            digest = payload[nul + 1:nul + 1 + HASH_RAW_LENGTH]
            if len(digest) != HASH_RAW_LENGTH:
                msg = f'Truncated digest in tree entry at offset {nul}'
                raise ValueError(msg)

            record_type = TreeRecordType(payload[pos:space].decode('ascii'))
            name = payload[space + 1:nul].decode('utf-8')
            records[name] = TreeRecord(record_type, digest.hex(), name)

            pos = nul + 1 + HASH_RAW_LENGTH

        return cls(records)


@dataclass
class Commit:
    """A snapshot: a tree, its parent commits and authorship."""

    tree_hash: str
    parents: list[str]
    message: str
    timestamp: int
    author: str = DEFAULT_AUTHOR
    committer: str = DEFAULT_AUTHOR
    tz_offset: str = DEFAULT_TZ_OFFSET

    @property
    def parent(self) -> str | None:
        """The first parent, the one history follows."""
        return self.parents[0] if self.parents else None

    @property
    def summary(self) -> str:
        """The first line of the message."""
        lines = self.message.splitlines()
        return lines[0] if lines else ''

    def serialize(self) -> bytes:
        lines = [f'tree {self.tree_hash}']
        lines.extend(f'parent {parent}' for parent in self.parents)
        lines.append(f'author {self.author} {self.timestamp} {self.tz_offset}')
        lines.append(f'committer {self.committer} {self.timestamp} {self.tz_offset}')
        lines.append('')
        lines.append(self.message)
        return ('\n'.join(lines) + '\n').encode('utf-8')

    @classmethod
    def parse(cls, payload: bytes) -> 'Commit':
        """Decode a commit payload.

        Header lines are read up to the first blank line; everything after it is the message.

        :param payload: The raw commit payload without its header.
        :return: The decoded Commit.
        :raises ValueError: If the payload has no tree line or a malformed identity line."""
        text = payload.decode('utf-8')
        header, _, message = text.partition('\n\n')

        tree_hash: str | None = None
        parents: list[str] = []
        author = committer = DEFAULT_AUTHOR
        timestamp = 0
        tz_offset = DEFAULT_TZ_OFFSET

        for line in header.splitlines():
            key, _, value = line.partition(' ')
            match key:
                case 'tree':
                    tree_hash = value.strip()
                case 'parent':
                    parents.append(value.strip())
                case 'author':
                    author, timestamp, tz_offset = _parse_identity(value)
                case 'committer':
                    committer, _, _ = _parse_identity(value)

        if not tree_hash:
            msg = 'Commit has no tree line'
            raise ValueError(msg)

        if message.endswith('\n'):
            message = message[:-1]

        return cls(tree_hash, parents, message, timestamp, author, committer, tz_offset)


def _parse_identity(value: str) -> tuple[str, int, str]:
    # "<name> <email> <unix-seconds> <tz-offset>"
    parts = value.rsplit(' ', 2)
    if len(parts) != 3:
        msg = f'Malformed identity line: {value!r}'
        raise ValueError(msg)
    identity, seconds, tz_offset = parts
    return identity, int(seconds), tz_offset
