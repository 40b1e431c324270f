import hashlib
import zlib
from pathlib import Path

from libknyt import Commit, ObjectKind, Tree, TreeRecord, TreeRecordType
from libknyt.exceptions import CorruptObjectError, ObjectNotFoundError
from libknyt.plumbing import (get_content_path, get_object, hash_object, load_blob, load_commit, load_tree,
                              normalize_content, put_object, save_commit, save_file_content, save_tree)
from pytest import mark, raises


def test_put_object_uses_git_compatible_digest(tmp_path: Path) -> None:
    digest = put_object(tmp_path, ObjectKind.BLOB, b'hello')

    assert digest == hashlib.sha1(b'blob 5\x00hello').hexdigest()
    assert digest == 'b6fc4c620b67d95f953a5c1c1230aaab5db5a1b0'


def test_put_object_stores_compressed_header_and_payload(tmp_path: Path) -> None:
    digest = put_object(tmp_path, ObjectKind.BLOB, b'hello')
    object_path = tmp_path / digest[:2] / digest[2:]

    assert object_path == get_content_path(tmp_path, digest)
    assert zlib.decompress(object_path.read_bytes()) == b'blob 5\x00hello'


def test_put_object_is_idempotent(tmp_path: Path) -> None:
    first = put_object(tmp_path, ObjectKind.BLOB, b'same content')
    object_path = get_content_path(tmp_path, first)

    # A rewrite would replace this marker
    object_path.write_bytes(b'marker')

    second = put_object(tmp_path, ObjectKind.BLOB, b'same content')

    assert first == second
    assert object_path.read_bytes() == b'marker'


@mark.parametrize('kind, payload', [
    (ObjectKind.BLOB, b''),
    (ObjectKind.BLOB, b'line 1\nline 2\n\x00binary'),
    (ObjectKind.COMMIT, b'tree ' + b'a' * 40 + b'\n\nmsg\n'),
])
def test_get_object_round_trip(tmp_path: Path, kind: ObjectKind, payload: bytes) -> None:
    digest = put_object(tmp_path, kind, payload)

    assert get_object(tmp_path, digest) == (kind, payload)


def test_get_object_missing_raises_error(tmp_path: Path) -> None:
    with raises(ObjectNotFoundError):
        get_object(tmp_path, 'a' * 40)

    with raises(ObjectNotFoundError):
        get_object(tmp_path, 'not-a-digest')


def test_get_object_not_compressed_raises_error(tmp_path: Path) -> None:
    digest = put_object(tmp_path, ObjectKind.BLOB, b'data')
    get_content_path(tmp_path, digest).write_text('corrupted object data')

    with raises(CorruptObjectError):
        get_object(tmp_path, digest)


@mark.parametrize('raw', [b'no header terminator', b'sock 4\x00data', b'blob four\x00data', b'blob 9\x00data'])
def test_get_object_malformed_header_raises_error(tmp_path: Path, raw: bytes) -> None:
    digest = put_object(tmp_path, ObjectKind.BLOB, b'data')
    get_content_path(tmp_path, digest).write_bytes(zlib.compress(raw))

    with raises(CorruptObjectError):
        get_object(tmp_path, digest)


def test_tree_encoding(tmp_path: Path) -> None:
    blob_hash = put_object(tmp_path, ObjectKind.BLOB, b'content')
    sub_hash = save_tree(tmp_path, Tree({'f.txt': TreeRecord(TreeRecordType.BLOB, blob_hash, 'f.txt')}))
    tree = Tree({
        'sub': TreeRecord(TreeRecordType.TREE, sub_hash, 'sub'),
        'a.txt': TreeRecord(TreeRecordType.BLOB, blob_hash, 'a.txt'),
    })

    payload = tree.serialize()

    assert payload == (b'100644 a.txt\x00' + bytes.fromhex(blob_hash) +
                       b'40000 sub\x00' + bytes.fromhex(sub_hash))

    tree_hash = save_tree(tmp_path, tree)
    assert tree_hash == hash_object(tree)
    assert load_tree(tmp_path, tree_hash) == tree


def test_load_tree_truncated_raises_error(tmp_path: Path) -> None:
    digest = put_object(tmp_path, ObjectKind.TREE, b'100644 a.txt\x00' + b'\x01' * 5)

    with raises(CorruptObjectError):
        load_tree(tmp_path, digest)


def test_load_tree_of_blob_raises_error(tmp_path: Path) -> None:
    digest = put_object(tmp_path, ObjectKind.BLOB, b'not a tree')

    with raises(CorruptObjectError):
        load_tree(tmp_path, digest)


def test_commit_encoding(tmp_path: Path) -> None:
    commit = Commit('a' * 40, ['b' * 40, 'c' * 40], 'Merge things', 1700000000)

    assert commit.serialize() == (
        b'tree ' + b'a' * 40 + b'\n'
        b'parent ' + b'b' * 40 + b'\n'
        b'parent ' + b'c' * 40 + b'\n'
        b'author knyt <you@example.com> 1700000000 +0000\n'
        b'committer knyt <you@example.com> 1700000000 +0000\n'
        b'\n'
        b'Merge things\n')

    commit_hash = save_commit(tmp_path, commit)
    loaded = load_commit(tmp_path, commit_hash)

    assert loaded == commit
    assert loaded.parent == 'b' * 40
    assert commit_hash == hash_object(commit)


def test_commit_multiline_message(tmp_path: Path) -> None:
    commit = Commit('a' * 40, [], 'Subject\n\nBody line', 1)

    loaded = load_commit(tmp_path, save_commit(tmp_path, commit))

    assert loaded.message == 'Subject\n\nBody line'
    assert loaded.summary == 'Subject'
    assert loaded.parent is None


def test_load_commit_without_tree_raises_error(tmp_path: Path) -> None:
    digest = put_object(tmp_path, ObjectKind.COMMIT, b'author x <y> 1 +0000\n\nmsg\n')

    with raises(CorruptObjectError):
        load_commit(tmp_path, digest)


def test_normalize_content_transcodes_utf16le() -> None:
    utf16 = b'\xff\xfe' + 'héllo'.encode('utf-16-le')

    assert normalize_content(utf16) == 'héllo'.encode()
    assert normalize_content(b'plain') == b'plain'


def test_save_file_content_normalizes_utf16le(tmp_path: Path) -> None:
    objects_dir = tmp_path / 'objects'
    file = tmp_path / 'utf16.txt'
    file.write_bytes(b'\xff\xfe' + 'hello'.encode('utf-16-le'))

    blob = save_file_content(objects_dir, file)

    assert load_blob(objects_dir, blob.hash) == b'hello'
    assert blob.hash == hashlib.sha1(b'blob 5\x00hello').hexdigest()


def test_save_file_content_missing_file_raises_error(tmp_path: Path) -> None:
    with raises(ValueError):
        save_file_content(tmp_path, tmp_path / 'missing.txt')
