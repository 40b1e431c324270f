"""Object store plumbing: hashing, compression and addressing of objects."""

import hashlib
import logging
import zlib
from pathlib import Path

from .exceptions import CorruptObjectError, ObjectNotFoundError, RepositoryIOError
from .objects import Blob, Commit, ObjectKind, Tree
from .ref import HashRef, is_hash

logger = logging.getLogger(__name__)

UTF16_LE_BOM = b'\xff\xfe'
UTF8_BOM = b'\xef\xbb\xbf'


def encode_object(kind: ObjectKind, payload: bytes) -> bytes:
    """Prefix a payload with its ``<kind> <length>\\0`` header."""
    return f'{kind.value} {len(payload)}'.encode('ascii') + b'\x00' + payload


def hash_bytes(kind: ObjectKind, payload: bytes) -> HashRef:
    """Compute the digest of a payload as it would be stored."""
    return HashRef(hashlib.sha1(encode_object(kind, payload)).hexdigest())


def hash_object(obj: Tree | Commit) -> HashRef:
    """Compute the digest of a tree or commit without storing it."""
    match obj:
        case Tree():
            return hash_bytes(ObjectKind.TREE, obj.serialize())
        case Commit():
            return hash_bytes(ObjectKind.COMMIT, obj.serialize())
        case _:
            msg = f'Cannot hash object of type {type(obj)}'
            raise TypeError(msg)


def get_content_path(objects_dir: str | Path, digest: str) -> Path:
    """Get the ``objects/<2-hex>/<38-hex>`` path of a digest."""
    return Path(objects_dir) / digest[:2] / digest[2:]


def put_object(objects_dir: str | Path, kind: ObjectKind, payload: bytes) -> HashRef:
    """Store an object unless an object with the same digest already exists.

    :param objects_dir: The objects directory of the repository.
    :param kind: The object kind.
    :param payload: The object payload.
    :return: The digest of the object.
    :raises RepositoryIOError: If the object cannot be written."""
    data = encode_object(kind, payload)
    digest = HashRef(hashlib.sha1(data).hexdigest())
    object_path = get_content_path(objects_dir, digest)

    if object_path.exists():
        logger.debug('Object %s already stored', digest)
        return digest

    try:
        object_path.parent.mkdir(parents=True, exist_ok=True)
        object_path.write_bytes(zlib.compress(data))
    except OSError as e:
        msg = f'Error writing object {digest}'
        raise RepositoryIOError(msg) from e

    return digest


def get_object(objects_dir: str | Path, digest: str) -> tuple[ObjectKind, bytes]:
    """Read, decompress and split an object into its kind and payload.

    :param objects_dir: The objects directory of the repository.
    :param digest: The digest of the object.
    :return: The object kind and its payload.
    :raises ObjectNotFoundError: If no object with this digest exists.
    :raises CorruptObjectError: If the object cannot be decompressed or its header parsed.
    :raises RepositoryIOError: If the object cannot be read."""
    if not is_hash(digest):
        msg = f'Invalid object digest: {digest!r}'
        raise ObjectNotFoundError(msg)

    object_path = get_content_path(objects_dir, digest)
    try:
        compressed = object_path.read_bytes()
    except FileNotFoundError as e:
        msg = f'Object {digest} not found'
        raise ObjectNotFoundError(msg) from e
    except OSError as e:
        msg = f'Error reading object {digest}'
        raise RepositoryIOError(msg) from e

    try:
        data = zlib.decompress(compressed)
    except zlib.error as e:
        msg = f'Object {digest} cannot be decompressed'
        raise CorruptObjectError(msg) from e

    header, sep, payload = data.partition(b'\x00')
    if not sep:
        msg = f'Object {digest} has no header terminator'
        raise CorruptObjectError(msg)

    try:
        kind_name, length = header.decode('ascii').split(' ')
        kind = ObjectKind(kind_name)
        declared_length = int(length)
    except ValueError as e:
        msg = f'Object {digest} has a malformed header: {header!r}'
        raise CorruptObjectError(msg) from e

    if declared_length != len(payload):
        msg = f'Object {digest} declares {declared_length} bytes but holds {len(payload)}'
        raise CorruptObjectError(msg)

    return kind, payload


def _get_typed(objects_dir: str | Path, digest: str, expected: ObjectKind) -> bytes:
    kind, payload = get_object(objects_dir, digest)
    if kind is not expected:
        msg = f'Object {digest} is a {kind.value}, expected a {expected.value}'
        raise CorruptObjectError(msg)
    return payload


def normalize_content(content: bytes) -> bytes:
    """Transcode UTF-16LE content (detected by its BOM) to UTF-8."""
    if content.startswith(UTF16_LE_BOM):
        return content[len(UTF16_LE_BOM):].decode('utf-16-le').encode('utf-8')
    return content


def decode_text(content: bytes) -> str:
    """Decode blob content as text, honoring a UTF-16LE BOM and dropping a UTF-8 BOM.

    :raises UnicodeDecodeError: If the content is not valid text."""
    if content.startswith(UTF16_LE_BOM):
        return content[len(UTF16_LE_BOM):].decode('utf-16-le')
    if content.startswith(UTF8_BOM):
        content = content[len(UTF8_BOM):]
    return content.decode('utf-8')


def save_blob(objects_dir: str | Path, content: bytes) -> Blob:
    """Store raw content as a blob."""
    return Blob(put_object(objects_dir, ObjectKind.BLOB, content), len(content))


def save_file_content(objects_dir: str | Path, file: Path) -> Blob:
    """Store the normalized content of a file as a blob.

    :param objects_dir: The objects directory of the repository.
    :param file: The file to store.
    :return: The stored Blob.
    :raises ValueError: If the file does not exist.
    :raises RepositoryIOError: If the file cannot be read."""
    if not file.is_file():
        msg = f'{file} is not a file'
        raise ValueError(msg)

    try:
        content = file.read_bytes()
    except OSError as e:
        msg = f'Error reading {file}'
        raise RepositoryIOError(msg) from e

    return save_blob(objects_dir, normalize_content(content))


def hash_file_content(file: Path) -> HashRef:
    """Compute the blob digest a file would be stored under, without storing it."""
    return hash_bytes(ObjectKind.BLOB, normalize_content(file.read_bytes()))


def load_blob(objects_dir: str | Path, digest: str) -> bytes:
    return _get_typed(objects_dir, digest, ObjectKind.BLOB)


def load_blob_text(objects_dir: str | Path, digest: str) -> str:
    """Load a blob and decode it as text."""
    return decode_text(load_blob(objects_dir, digest))


def save_tree(objects_dir: str | Path, tree: Tree) -> HashRef:
    return put_object(objects_dir, ObjectKind.TREE, tree.serialize())


def load_tree(objects_dir: str | Path, digest: str) -> Tree:
    """Load and parse a tree object.

    :raises CorruptObjectError: If the object is not a well-formed tree."""
    payload = _get_typed(objects_dir, digest, ObjectKind.TREE)
    try:
        return Tree.parse(payload)
    except ValueError as e:
        msg = f'Tree {digest} is malformed'
        raise CorruptObjectError(msg) from e


def save_commit(objects_dir: str | Path, commit: Commit) -> HashRef:
    return put_object(objects_dir, ObjectKind.COMMIT, commit.serialize())


def load_commit(objects_dir: str | Path, digest: str) -> Commit:
    """Load and parse a commit object.

    :raises CorruptObjectError: If the object is not a well-formed commit."""
    payload = _get_typed(objects_dir, digest, ObjectKind.COMMIT)
    try:
        return Commit.parse(payload)
    except ValueError as e:
        msg = f'Commit {digest} is malformed'
        raise CorruptObjectError(msg) from e

