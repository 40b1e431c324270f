from pathlib import Path

from libknyt.exceptions import IndexMissingError, RepositoryError
from libknyt.index import IndexEntry, read_index, remove_entry, upsert_entry, write_index
from libknyt.ref import HashRef
from pytest import raises


def test_write_and_read_index(tmp_path: Path) -> None:
    index_file = tmp_path / 'index'
    entries = [IndexEntry('b.txt', HashRef('b' * 40)), IndexEntry('dir/a.txt', HashRef('a' * 40))]

    write_index(index_file, entries)

    assert read_index(index_file) == entries


def test_index_is_json_list_of_records(tmp_path: Path) -> None:
    index_file = tmp_path / 'index'

    write_index(index_file, [IndexEntry('a.txt', HashRef('a' * 40))])

    assert '"path": "a.txt"' in index_file.read_text()
    assert f'"digest": "{"a" * 40}"' in index_file.read_text()


def test_read_missing_index_raises_error(tmp_path: Path) -> None:
    with raises(IndexMissingError):
        read_index(tmp_path / 'index')


def test_read_malformed_index_raises_error(tmp_path: Path) -> None:
    index_file = tmp_path / 'index'

    malformed = [
        'not json',
        '{"path": "a"}',
        '[{"path": "a.txt", "digest": "xyz"}]',
        '[{"digest": "' + 'a' * 40 + '"}]',
    ]
    for content in malformed:
        index_file.write_text(content)
        with raises(RepositoryError):
            read_index(index_file)


def test_upsert_entry_replaces_same_path() -> None:
    entries = [IndexEntry('a.txt', HashRef('a' * 40)), IndexEntry('b.txt', HashRef('b' * 40))]

    upsert_entry(entries, IndexEntry('a.txt', HashRef('c' * 40)))
    upsert_entry(entries, IndexEntry('d.txt', HashRef('d' * 40)))

    assert entries == [
        IndexEntry('a.txt', HashRef('c' * 40)),
        IndexEntry('b.txt', HashRef('b' * 40)),
        IndexEntry('d.txt', HashRef('d' * 40)),
    ]


def test_remove_entry() -> None:
    entries = [IndexEntry('a.txt', HashRef('a' * 40)), IndexEntry('b.txt', HashRef('b' * 40))]

    assert remove_entry(entries, 'a.txt') == [IndexEntry('b.txt', HashRef('b' * 40))]
    assert remove_entry(entries, 'missing.txt') == entries
