"""References: direct commit hashes and symbolic pointers to other refs."""

from pathlib import Path

from .constants import HASH_CHARSET, HASH_LENGTH, SYMREF_PREFIX


class RefError(Exception):
    """Exception raised for invalid or unreadable references."""


class HashRef(str):
    """A reference holding a commit digest directly."""


class SymRef(str):
    """A reference naming another ref, relative to the repository directory (e.g. ``refs/heads/main``)."""


Ref = HashRef | SymRef


def is_hash(value: str) -> bool:
    """Check whether a string is a full lowercase hex digest."""
    return len(value) == HASH_LENGTH and all(c in HASH_CHARSET for c in value)


def read_ref(ref_file: Path) -> Ref | None:
    """Read a reference from a file.

    :param ref_file: The file holding the reference.
    :return: A SymRef for ``ref: <target>`` content, a HashRef for a bare digest, or None for an empty file.
    :raises RefError: If the file content is neither."""
    content = ref_file.read_text().strip()

    if not content:
        return None
    if content.startswith(SYMREF_PREFIX):
        return SymRef(content[len(SYMREF_PREFIX):].strip())
    if is_hash(content):
        return HashRef(content)

    msg = f'Invalid reference in {ref_file}: {content!r}'
    raise RefError(msg)


def write_ref(ref_file: Path, ref: Ref) -> None:
    """Write a reference to a file, creating parent directories as needed.

    :param ref_file: The file to write.
    :param ref: The reference to store.
    :raises RefError: If the reference is not a HashRef or SymRef."""
    match ref:
        case SymRef():
            content = f'{SYMREF_PREFIX}{ref}\n'
        case HashRef():
            content = str(ref)
        case _:
            msg = f'Invalid reference type: {type(ref)}'
            raise RefError(msg)

    ref_file.parent.mkdir(parents=True, exist_ok=True)
    ref_file.write_text(content)
