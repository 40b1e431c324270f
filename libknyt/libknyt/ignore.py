"""Ignore rules for staging."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath


@dataclass(frozen=True)
class IgnoreRules:
    """A set of path prefixes, relative to the working directory, that staging skips."""

    prefixes: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> 'IgnoreRules':
        """Build rules from ignore-file lines, skipping blank lines and ``#`` comments."""
        prefixes = {line.strip() for line in lines}
        return cls(frozenset(p for p in prefixes if p and not p.startswith('#')))

    def matches(self, path: str | PurePosixPath) -> bool:
        """Check whether a working-directory-relative path starts with any ignored prefix."""
        path = str(path)
        return any(path.startswith(prefix) for prefix in self.prefixes)

    def __bool__(self) -> bool:
        return bool(self.prefixes)


def load_ignore_file(ignore_file: Path) -> IgnoreRules:
    """Load ignore rules from a file, one prefix per line.

    :param ignore_file: The ignore file to read.
    :return: The loaded rules, or empty rules if the file does not exist."""
    if not ignore_file.exists():
        return IgnoreRules()

    return IgnoreRules.from_lines(ignore_file.read_text(encoding='utf-8').splitlines())
