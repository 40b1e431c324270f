"""Path-level and line-level differences between two trees."""

from dataclasses import dataclass, field
from difflib import unified_diff
from enum import Enum
from pathlib import Path

from .objects import TreeRecord
from .plumbing import decode_text, load_blob


class LineKind(Enum):
    """Classification of a line in a textual diff."""

    ADDED = '+'
    REMOVED = '-'
    CONTEXT = ' '
    HUNK = '@'


@dataclass(frozen=True)
class DiffLine:
    kind: LineKind
    text: str

    def __str__(self) -> str:
        if self.kind == LineKind.HUNK:
            return self.text
        return f'{self.kind.value}{self.text}'


@dataclass
class Diff:
    """A class representing a difference at one path between two trees."""

    path: str


@dataclass
class AddedDiff(Diff):
    """A file present only in the second tree."""

    record: TreeRecord


@dataclass
class RemovedDiff(Diff):
    """A file present only in the first tree."""

    record: TreeRecord


@dataclass
class ModifiedDiff(Diff):
    """A file whose content differs between the two trees.

    ``lines`` is empty when either side is not text."""

    old_record: TreeRecord
    new_record: TreeRecord
    lines: list[DiffLine] = field(default_factory=list)

    @property
    def added(self) -> list[str]:
        return [line.text for line in self.lines if line.kind == LineKind.ADDED]

    @property
    def removed(self) -> list[str]:
        return [line.text for line in self.lines if line.kind == LineKind.REMOVED]


def line_diff(old_text: str, new_text: str, context: int = 3) -> list[DiffLine]:
    """Compute a unified line diff between two texts.

    :param old_text: The text on the first side.
    :param new_text: The text on the second side.
    :param context: The number of unchanged lines kept around each change.
    :return: Hunk headers, context, removed and added lines in diff order."""
    diff = unified_diff(old_text.splitlines(), new_text.splitlines(), lineterm='', n=context)

    lines: list[DiffLine] = []
    # The first two lines are the ---/+++ file headers
    for i, line in enumerate(diff):
        if i < 2:
            continue
        if line.startswith('@@'):
            lines.append(DiffLine(LineKind.HUNK, line))
        else:
            lines.append(DiffLine(LineKind(line[0]), line[1:]))

    return lines


def diff_flat_trees(
    objects_dir: str | Path,
    old: dict[str, TreeRecord],
    new: dict[str, TreeRecord],
    context: int = 3,
) -> list[Diff]:
    """Compare two flattened trees.

    :param objects_dir: The objects directory of the repository.
    :param old: The flattened first tree.
    :param new: The flattened second tree.
    :param context: The number of context lines in line diffs.
    :return: The differences, in path order."""
    diffs: list[Diff] = []

    for path in sorted(set(old) | set(new)):
        old_record = old.get(path)
        new_record = new.get(path)

        if old_record is None:
            diffs.append(AddedDiff(path, new_record))
        elif new_record is None:
            diffs.append(RemovedDiff(path, old_record))
        elif old_record.hash != new_record.hash:
            try:
                old_text = decode_text(load_blob(objects_dir, old_record.hash))
                new_text = decode_text(load_blob(objects_dir, new_record.hash))
            except UnicodeDecodeError:
                diffs.append(ModifiedDiff(path, old_record, new_record))
                continue
            diffs.append(ModifiedDiff(path, old_record, new_record, line_diff(old_text, new_text, context)))

    return diffs
