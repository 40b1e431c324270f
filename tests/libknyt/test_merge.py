from pathlib import Path

from libknyt import Commit, Tree, TreeRecord, TreeRecordType
from libknyt.exceptions import CorruptObjectError, MergeError
from libknyt.merge import (PendingMerge, conflict_text, find_conflicted_files, find_merge_base, has_conflict_markers,
                           merge_blob_text, merge_flat_trees, read_pending_merge, write_pending_merge)
from libknyt.plumbing import load_blob, save_blob, save_commit, save_tree
from libknyt.ref import HashRef
from pytest import raises


def _commit(objects_dir: Path, message: str, parents: list[str] | None = None) -> HashRef:
    tree_hash = save_tree(objects_dir, Tree({}))
    return save_commit(objects_dir, Commit(tree_hash, parents or [], message, 1700000000))


def _record(objects_dir: Path, name: str, content: bytes) -> TreeRecord:
    return TreeRecord(TreeRecordType.BLOB, save_blob(objects_dir, content).hash, name)


def test_find_merge_base_linear_history(tmp_path: Path) -> None:
    first = _commit(tmp_path, 'first')
    second = _commit(tmp_path, 'second', [first])
    third = _commit(tmp_path, 'third', [second])

    assert find_merge_base(tmp_path, third, first) == first
    assert find_merge_base(tmp_path, first, third) == first
    assert find_merge_base(tmp_path, third, third) == third


def test_find_merge_base_branches(tmp_path: Path) -> None:
    root = _commit(tmp_path, 'root')
    fork = _commit(tmp_path, 'fork', [root])
    left = _commit(tmp_path, 'left', [fork])
    right = _commit(tmp_path, 'right', [fork])
    right_tip = _commit(tmp_path, 'right tip', [right])

    assert find_merge_base(tmp_path, left, right_tip) == fork


def test_find_merge_base_after_merge(tmp_path: Path) -> None:
    root = _commit(tmp_path, 'root')
    main = _commit(tmp_path, 'main', [root])
    feature = _commit(tmp_path, 'feature', [root])
    merged = _commit(tmp_path, 'merge', [main, feature])
    feature_tip = _commit(tmp_path, 'feature tip', [feature])

    assert find_merge_base(tmp_path, merged, feature_tip) == feature


def test_find_merge_base_unrelated_histories(tmp_path: Path) -> None:
    first = _commit(tmp_path, 'first root')
    second = _commit(tmp_path, 'second root')

    assert find_merge_base(tmp_path, first, second) is None


def test_merge_flat_trees_takes_single_side_changes(tmp_path: Path) -> None:
    base = {'f': _record(tmp_path, 'f', b'x'), 'g': _record(tmp_path, 'g', b'g')}
    ours = {'f': _record(tmp_path, 'f', b'x'), 'g': _record(tmp_path, 'g', b'ours g')}
    theirs = {'f': _record(tmp_path, 'f', b'y'), 'g': _record(tmp_path, 'g', b'g')}

    merged = merge_flat_trees(tmp_path, base, ours, theirs)

    assert merged.conflicts == []
    assert load_blob(tmp_path, merged.records['f'].hash) == b'y'
    assert load_blob(tmp_path, merged.records['g'].hash) == b'ours g'


def test_merge_flat_trees_keeps_one_sided_paths(tmp_path: Path) -> None:
    shared = _record(tmp_path, 'shared', b'same')
    ours = {'shared': shared, 'mine': _record(tmp_path, 'mine', b'mine')}
    theirs = {'shared': shared, 'dir/theirs': _record(tmp_path, 'theirs', b'theirs')}

    merged = merge_flat_trees(tmp_path, {'shared': shared}, ours, theirs)

    assert merged.conflicts == []
    assert sorted(merged.records) == ['dir/theirs', 'mine', 'shared']


def test_merge_flat_trees_does_not_propagate_deletions(tmp_path: Path) -> None:
    base = {'gone': _record(tmp_path, 'gone', b'old')}
    ours = {'gone': _record(tmp_path, 'gone', b'old')}

    merged = merge_flat_trees(tmp_path, base, ours, {})

    assert 'gone' in merged.records


def test_merge_flat_trees_conflict(tmp_path: Path) -> None:
    base = {'f': _record(tmp_path, 'f', b'x')}
    ours = {'f': _record(tmp_path, 'f', b'y')}
    theirs = {'f': _record(tmp_path, 'f', b'z')}

    merged = merge_flat_trees(tmp_path, base, ours, theirs)

    assert merged.conflicts == ['f']
    content = load_blob(tmp_path, merged.records['f'].hash)
    assert content == b'<<<<<<< CURRENT\ny\n=======\nz\n>>>>>>> MERGING\n'


def test_merge_flat_trees_without_base_conflicts_on_different_content(tmp_path: Path) -> None:
    ours = {'f': _record(tmp_path, 'f', b'mine')}
    theirs = {'f': _record(tmp_path, 'f', b'yours')}

    merged = merge_flat_trees(tmp_path, {}, ours, theirs)

    assert merged.conflicts == ['f']


def test_merge_flat_trees_file_and_directory_clash_raises_error(tmp_path: Path) -> None:
    ours = {'a': _record(tmp_path, 'a', b'file')}
    theirs = {'a/b.txt': _record(tmp_path, 'b.txt', b'nested')}

    with raises(MergeError, match='Cannot merge'):
        merge_flat_trees(tmp_path, {}, ours, theirs)


def test_merge_flat_trees_line_merge(tmp_path: Path) -> None:
    base = {'f': _record(tmp_path, 'f', b'a\nb\nc\n')}
    ours = {'f': _record(tmp_path, 'f', b'A\nb\nc\n')}
    theirs = {'f': _record(tmp_path, 'f', b'a\nb\nC\n')}

    whole_file = merge_flat_trees(tmp_path, base, ours, theirs)
    line_level = merge_flat_trees(tmp_path, base, ours, theirs, line_merge=True)

    assert whole_file.conflicts == ['f']
    assert line_level.conflicts == []
    assert load_blob(tmp_path, line_level.records['f'].hash) == b'A\nb\nC\n'


def test_merge_blob_text_conflict_returns_none(tmp_path: Path) -> None:
    base = save_blob(tmp_path, b'line\n').hash
    ours = save_blob(tmp_path, b'ours\n').hash
    theirs = save_blob(tmp_path, b'theirs\n').hash

    assert merge_blob_text(tmp_path, base, ours, theirs) is None


def test_merge_blob_text_binary_returns_none(tmp_path: Path) -> None:
    ours = save_blob(tmp_path, b'\x80\x81 not utf-8').hash
    theirs = save_blob(tmp_path, b'text\n').hash

    assert merge_blob_text(tmp_path, None, ours, theirs) is None


def test_conflict_text() -> None:
    assert conflict_text('y', 'z') == '<<<<<<< CURRENT\ny\n=======\nz\n>>>>>>> MERGING\n'


def test_has_conflict_markers() -> None:
    assert has_conflict_markers(b'a\n<<<<<<< CURRENT\n')
    assert has_conflict_markers(b'=======\n')
    assert has_conflict_markers(b'>>>>>>> MERGING')
    assert not has_conflict_markers(b'<<<<<< six is not enough')


def test_find_conflicted_files(tmp_path: Path) -> None:
    (tmp_path / 'b.txt').write_text(conflict_text('1', '2'))
    (tmp_path / 'a.txt').write_text('=======\n')
    (tmp_path / 'clean.txt').write_text('clean')

    assert find_conflicted_files(tmp_path, ['clean.txt', 'b.txt', 'a.txt']) == ['a.txt', 'b.txt']


def test_pending_merge_round_trip(tmp_path: Path) -> None:
    merge_head = tmp_path / 'MERGE_HEAD'
    pending = PendingMerge(HashRef('a' * 40), HashRef('b' * 40))

    assert read_pending_merge(merge_head) is None

    write_pending_merge(merge_head, pending)

    assert merge_head.read_text() == f'{"a" * 40}\n{"b" * 40}\n'
    assert read_pending_merge(merge_head) == pending


def test_pending_merge_tree_only(tmp_path: Path) -> None:
    merge_head = tmp_path / 'MERGE_HEAD'
    merge_head.write_text('a' * 40)

    assert read_pending_merge(merge_head) == PendingMerge(HashRef('a' * 40))


def test_pending_merge_invalid_digest_raises_error(tmp_path: Path) -> None:
    merge_head = tmp_path / 'MERGE_HEAD'
    merge_head.write_text('not a digest\n')

    with raises(CorruptObjectError):
        read_pending_merge(merge_head)
