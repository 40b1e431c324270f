"""libknyt repository management."""

import logging
import re
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path, PurePosixPath
from typing import Concatenate, ParamSpec, TypeVar

from . import Blob, Commit, ObjectKind
from .constants import (DEFAULT_AUTHOR, DEFAULT_BRANCH, DEFAULT_REPO_DIR, HEADS_DIR, HEAD_FILE, IGNORE_FILE,
                        INDEX_FILE, MERGE_HEAD_FILE, MERGE_RESOLVED_MESSAGE, OBJECTS_SUBDIR, REFS_DIR, TAG_PREFIX,
                        TAGS_DIR, UNSTAGE_ALL)
from .diff import Diff, diff_flat_trees
from .exceptions import (BranchExistsError, BranchNotFoundError, DetachedHeadError, IndexMissingError,
                         MergeInProgressError, MissingMessageError, NoCommitsYetError, NoMergeInProgressError,
                         RepositoryError, RepositoryNotFoundError, UnresolvedConflictsError)
from .ignore import IgnoreRules, load_ignore_file
from .index import IndexEntry, read_index, remove_entry, upsert_entry, write_index
from .merge import (MergeResult, PendingMerge, find_conflicted_files, find_merge_base, merge_flat_trees,
                    read_pending_merge, write_pending_merge)
from .plumbing import get_object, hash_file_content, load_commit, save_commit, save_file_content
from .ref import HashRef, Ref, RefError, SymRef, read_ref, write_ref
from .trees import build_tree, flatten_tree, restore_tree, write_flat_tree

logger = logging.getLogger(__name__)

P = ParamSpec('P')
R = TypeVar('R')

TAG_NAME_PATTERN = re.compile(rf'^{TAG_PREFIX}(\d+)$')


@dataclass
class LogEntry:
    """A class representing a log entry for a branch or commit history."""

    commit_ref: HashRef
    commit: Commit


@dataclass
class Tag:
    """Represents an immutable label that points to a commit."""

    name: str
    target: HashRef


@dataclass
class Status:
    """The working directory compared against the staging index."""

    staged: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    untracked: list[str] = field(default_factory=list)


class Repository:
    """Represents a libknyt repository.

    This class provides methods to initialize a repository, stage files, manage branches,
    commit changes, merge and diff branches."""

    def __init__(self, working_dir: Path | str, repo_dir: Path | str | None = None,
                 ignore: IgnoreRules | None = None, author: str | None = None) -> None:
        """Initialize a Repository instance. The repository is not created on disk until `init()` is called.

        :param working_dir: The working directory where the repository will be located.
        :param repo_dir: The name of the repository directory within the working directory. Defaults to '.knyt'.
        :param ignore: The ignore rules used when staging. Defaults to the rules of the '.knytignore' file.
        :param author: The identity recorded as author and committer, as '<name> <email>'."""
        self.working_dir = Path(working_dir)

        if repo_dir is None:
            self.repo_dir = Path(DEFAULT_REPO_DIR)
        else:
            self.repo_dir = Path(repo_dir)

        if ignore is None:
            ignore = load_ignore_file(self.ignore_file())
        self.ignore = ignore
        self.author = author or DEFAULT_AUTHOR

    def init(self, default_branch: str = DEFAULT_BRANCH) -> None:
        """Initialize a new repository in the working directory.

        The default branch has no ref file until its first commit.

        :param default_branch: The name of the default branch HEAD points to. Defaults to 'main'.
        :raises RepositoryError: If the repository already exists."""
        if self.exists():
            msg = f'Repository already exists at {self.repo_path()}'
            raise RepositoryError(msg)

        self.repo_path().mkdir(parents=True)
        self.objects_dir().mkdir()
        self.heads_dir().mkdir(parents=True)
        self.tags_dir().mkdir(parents=True)

        write_ref(self.head_file(), branch_ref(default_branch))

        ignore_file = self.ignore_file()
        if not ignore_file.exists():
            ignore_file.write_text('# Add files/folders to ignore\n')

    def exists(self) -> bool:
        """Check if the repository exists in the working directory.

        :return: True if the repository exists, False otherwise."""
        return self.repo_path().exists()

    def repo_path(self) -> Path:
        """Get the path to the repository directory.

        :return: The path to the repository directory."""
        return self.working_dir / self.repo_dir

    def objects_dir(self) -> Path:
        """Get the path to the objects directory within the repository.

        :return: The path to the objects directory."""
        return self.repo_path() / OBJECTS_SUBDIR

    def refs_dir(self) -> Path:
        """Get the path to the refs directory within the repository.

        :return: The path to the refs directory."""
        return self.repo_path() / REFS_DIR

    def heads_dir(self) -> Path:
        """Get the path to the heads directory within the repository.

        :return: The path to the heads directory."""
        return self.refs_dir() / HEADS_DIR

    def tags_dir(self) -> Path:
        """Get the path to the tags directory within the repository."""
        return self.refs_dir() / TAGS_DIR

    def head_file(self) -> Path:
        """Get the path to the HEAD file within the repository.

        :return: The path to the HEAD file."""
        return self.repo_path() / HEAD_FILE

    def index_file(self) -> Path:
        """Get the path to the staging index file within the repository.

        :return: The path to the index file."""
        return self.repo_path() / INDEX_FILE

    def merge_head_file(self) -> Path:
        """Get the path to the pending merge marker within the repository.

        :return: The path to the MERGE_HEAD file."""
        return self.repo_path() / MERGE_HEAD_FILE

    def ignore_file(self) -> Path:
        """Get the path to the ignore file in the working directory.

        :return: The path to the ignore file."""
        return self.working_dir / IGNORE_FILE

    @staticmethod
    def requires_repo(func: Callable[Concatenate['Repository', P], R]) -> \
            Callable[Concatenate['Repository', P], R]:
        """Decorate a Repository method to ensure that the repository exists before executing the method.

        :param func: The method to decorate.
        :return: A wrapper function that checks for the repository's existence."""

        @wraps(func)
        def _verify_repo(self: 'Repository', *args: P.args, **kwargs: P.kwargs) -> R:
            if not self.exists():
                msg = f'Repository not initialized at {self.repo_path()}'
                raise RepositoryNotFoundError(msg)

            return func(self, *args, **kwargs)

        return _verify_repo

    @requires_repo
    def head_ref(self) -> Ref | None:
        """Get the current HEAD reference of the repository.

        :return: The current HEAD reference, which can be a HashRef or SymRef.
        :raises RepositoryError: If the HEAD ref file does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        head_file = self.head_file()
        if not head_file.exists():
            msg = 'HEAD ref file does not exist'
            raise RepositoryError(msg)

        return read_ref(head_file)

    @requires_repo
    def resolve_ref(self, ref: Ref | None) -> HashRef | None:
        """Resolve a reference to a HashRef, following symbolic references if necessary.

        :param ref: The reference to resolve.
        :return: The resolved HashRef, or None if a symbolic reference points at a ref without a commit.
        :raises RefError: If a ref file holds an invalid reference.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        match ref:
            case HashRef():
                return ref
            case SymRef():
                ref_file = self.repo_path() / ref
                if not ref_file.exists():
                    return None
                return self.resolve_ref(read_ref(ref_file))
            case None:
                return None
            case _:
                msg = f'Invalid reference type: {type(ref)}'
                raise RefError(msg)

    @requires_repo
    def head_commit(self) -> HashRef | None:
        """Return a ref to the commit HEAD resolves to.

        :return: The current commit reference, or None if the current branch has no commit yet.
        :raises RepositoryError: If the HEAD ref file does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        return self.resolve_ref(self.head_ref())

    @requires_repo
    def current_branch(self) -> str | None:
        """Get the name of the branch HEAD points to.

        :return: The branch name, or None if HEAD is detached."""
        head = self.head_ref()
        prefix = f'{REFS_DIR}/{HEADS_DIR}/'
        if isinstance(head, SymRef) and head.startswith(prefix):
            return head[len(prefix):]
        return None

    @requires_repo
    def update_ref(self, ref: SymRef, new_ref: HashRef) -> None:
        """Point a symbolic reference at a commit, creating the ref file if needed.

        :param ref: The reference to update, relative to the repository directory.
        :param new_ref: The commit to point at.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        write_ref(self.repo_path() / ref, new_ref)

    @requires_repo
    def branch_exists(self, branch: str) -> bool:
        """Check if a branch exists in the repository.

        :param branch: The name of the branch to check.
        :return: True if the branch exists, False otherwise.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        return (self.heads_dir() / branch).is_file()

    @requires_repo
    def branches(self) -> list[str]:
        """Get a list of all branch names in the repository, sorted.

        :return: A list of branch names.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        heads_dir = self.heads_dir()
        return sorted(x.relative_to(heads_dir).as_posix() for x in heads_dir.rglob('*') if x.is_file())

    @requires_repo
    def branch_commit(self, branch: str) -> HashRef:
        """Get the commit a branch points to.

        :param branch: The name of the branch.
        :return: The commit reference of the branch.
        :raises BranchNotFoundError: If the branch does not exist.
        :raises NoCommitsYetError: If the branch ref is empty."""
        if not self.branch_exists(branch):
            msg = f'Branch "{branch}" does not exist'
            raise BranchNotFoundError(msg)

        commit_ref = self.resolve_ref(branch_ref(branch))
        if commit_ref is None:
            msg = f'Branch "{branch}" has no commits yet'
            raise NoCommitsYetError(msg)

        return commit_ref

    @requires_repo
    def create_branch(self, branch: str) -> HashRef:
        """Create a new branch pointing at the current commit.

        :param branch: The name of the branch to create.
        :return: The commit the new branch points to.
        :raises ValueError: If the branch name is empty.
        :raises DetachedHeadError: If HEAD does not point to a branch.
        :raises NoCommitsYetError: If the current branch has no commit yet.
        :raises BranchExistsError: If the branch already exists.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        if not branch:
            msg = 'Branch name is required'
            raise ValueError(msg)

        head = self.head_ref()
        if not isinstance(head, SymRef):
            msg = 'HEAD is detached; cannot create a branch'
            raise DetachedHeadError(msg)

        commit_ref = self.resolve_ref(head)
        if commit_ref is None:
            msg = f'Branch "{self.current_branch()}" has no commits yet'
            raise NoCommitsYetError(msg)

        if self.branch_exists(branch):
            msg = f'Branch "{branch}" already exists'
            raise BranchExistsError(msg)

        self.update_ref(branch_ref(branch), commit_ref)
        logger.info('Created branch %s at %s', branch, commit_ref)

        return commit_ref

    @requires_repo
    def save_file_content(self, file: Path) -> Blob:
        """Save the content of a file to the repository.

        :param file: The path to the file to save.
        :return: A Blob object representing the saved file content.
        :raises ValueError: If the file does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        return save_file_content(self.objects_dir(), file)

    @requires_repo
    def read_object(self, digest: str) -> tuple[ObjectKind, bytes]:
        """Read an object from the repository.

        :param digest: The digest of the object.
        :return: The object kind and its payload.
        :raises ObjectNotFoundError: If the object does not exist.
        :raises CorruptObjectError: If the object cannot be decoded."""
        return get_object(self.objects_dir(), digest)

    def _relative_path(self, path: Path | str) -> str:
        path = Path(path)
        if path.is_absolute():
            path = path.resolve().relative_to(self.working_dir.resolve())

        posix = path.as_posix()
        return '' if posix == '.' else posix

    def _is_metadata(self, rel_path: str) -> bool:
        parts = PurePosixPath(rel_path).parts
        return bool(parts) and (parts[0] == self.repo_dir.name or rel_path == IGNORE_FILE)

    def _points_into_repo(self, path: Path) -> bool:
        return path.resolve().is_relative_to(self.repo_path().resolve())

    def _skip_entry(self, rel_path: str, path: Path) -> bool:
        if self._is_metadata(rel_path) or self._points_into_repo(path):
            return True
        # Linked directories are never walked
        return path.is_symlink() and path.is_dir()

    @requires_repo
    def working_files(self) -> list[str]:
        """List every file of the working directory, excluding repository metadata.

        :return: POSIX paths relative to the working directory, sorted."""
        files: list[str] = []
        stack = [self.working_dir]

        while stack:
            current = stack.pop()
            for item in current.iterdir():
                rel_path = item.relative_to(self.working_dir).as_posix()
                if self._skip_entry(rel_path, item):
                    continue
                if item.is_dir():
                    stack.append(item)
                elif item.is_file():
                    files.append(rel_path)

        return sorted(files)

    @requires_repo
    def staged_entries(self) -> list[IndexEntry]:
        """Read the staging index.

        :return: The staged entries.
        :raises IndexMissingError: If nothing was ever staged."""
        return read_index(self.index_file())

    def _read_index_or_empty(self) -> list[IndexEntry]:
        index_file = self.index_file()
        return read_index(index_file) if index_file.exists() else []

    @requires_repo
    def stage(self, path: Path | str, ignore: IgnoreRules | None = None) -> list[IndexEntry]:
        """Stage a file, or every file below a directory.

        Ignored paths, the ignore file, anything resolving into the repository directory and
        symbolic links to directories are skipped.

        :param path: The file or directory to stage, relative to the working directory.
        :param ignore: The ignore rules to apply. Defaults to the repository's rules.
        :return: The entries that were staged.
        :raises ValueError: If the path does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        ignore = self.ignore if ignore is None else ignore
        entries = self._read_index_or_empty()
        staged: list[IndexEntry] = []

        root = self._relative_path(path)
        stack = [root]
        while stack:
            rel_path = stack.pop()
            full_path = self.working_dir / rel_path

            if self._is_metadata(rel_path) or (rel_path and ignore.matches(rel_path)):
                logger.debug('Skipping %s', rel_path)
                continue
            if rel_path and self._skip_entry(rel_path, full_path):
                logger.debug('Skipping link: %s', rel_path)
                continue

            if full_path.is_file():
                blob = save_file_content(self.objects_dir(), full_path)
                entry = IndexEntry(rel_path, blob.hash)
                upsert_entry(entries, entry)
                staged.append(entry)
            elif full_path.is_dir():
                children = sorted(full_path.iterdir(), reverse=True)
                stack.extend(child.relative_to(self.working_dir).as_posix() for child in children)
            elif rel_path == root:
                msg = f'Path "{path}" does not exist'
                raise ValueError(msg)

        write_index(self.index_file(), entries)
        return staged

    @requires_repo
    def unstage(self, path: Path | str) -> int:
        """Remove a path from the staging index, or every path when given '.'.

        :param path: The staged path, or '.' for all of them.
        :return: The number of entries removed.
        :raises IndexMissingError: If the index file does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        entries = read_index(self.index_file())

        if str(path) == UNSTAGE_ALL:
            if not entries:
                logger.warning('No files are staged')
                return 0
            write_index(self.index_file(), [])
            return len(entries)

        rel_path = self._relative_path(path)
        remaining = remove_entry(entries, rel_path)
        if len(remaining) == len(entries):
            logger.warning('%s is not staged', rel_path)
            return 0

        write_index(self.index_file(), remaining)
        return len(entries) - len(remaining)

    @requires_repo
    def status(self) -> Status:
        """Compare the working directory with the staging index.

        :return: The staged, modified and untracked paths.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        staged_digests = {entry.path: entry.digest for entry in self._read_index_or_empty()}
        status = Status()

        for rel_path in self.working_files():
            if rel_path not in staged_digests:
                if not self.ignore.matches(rel_path):
                    status.untracked.append(rel_path)
            elif hash_file_content(self.working_dir / rel_path) == staged_digests[rel_path]:
                status.staged.append(rel_path)
            else:
                status.modified.append(rel_path)

        return status

    @requires_repo
    def write_tree(self) -> HashRef:
        """Build and store the tree of the staging index.

        :return: The digest of the root tree.
        :raises IndexMissingError: If the index file does not exist."""
        return build_tree(self.objects_dir(), read_index(self.index_file()))

    @requires_repo
    def commit_tree(self, tree_hash: str, message: str, parents: list[str] | None = None) -> HashRef:
        """Create a commit for a tree and advance the ref HEAD resolves to.

        The commit is also tagged with the next sequential 'v<N>' tag.

        :param tree_hash: The root tree of the commit.
        :param message: The commit message.
        :param parents: The parent commits, first parent first.
        :return: The new commit reference.
        :raises MissingMessageError: If the message is empty.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        if not message:
            msg = 'Commit message is required'
            raise MissingMessageError(msg)

        timestamp = int(datetime.now(timezone.utc).timestamp())
        commit = Commit(tree_hash, list(parents or []), message, timestamp, self.author, self.author)
        commit_ref = save_commit(self.objects_dir(), commit)

        head = self.head_ref()
        if isinstance(head, SymRef):
            self.update_ref(head, commit_ref)
        else:
            write_ref(self.head_file(), commit_ref)

        tag = self._tag_commit(commit_ref)
        logger.info('Committed %s (tagged %s)', commit_ref, tag.name)

        return commit_ref

    @requires_repo
    def commit(self, message: str) -> HashRef:
        """Commit the staging index on top of the current commit.

        The index is left as it is after the commit.

        :param message: The commit message.
        :return: The new commit reference.
        :raises MissingMessageError: If the message is empty.
        :raises UnresolvedConflictsError: If any working file still holds conflict markers.
        :raises IndexMissingError: If nothing was ever staged.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        if not message:
            msg = 'Commit message is required'
            raise MissingMessageError(msg)

        conflicted = find_conflicted_files(self.working_dir, self.working_files())
        if conflicted:
            raise UnresolvedConflictsError(conflicted)

        if not self.index_file().exists():
            msg = 'No staged files found'
            raise IndexMissingError(msg)

        tree_hash = self.write_tree()
        parent = self.head_commit()

        return self.commit_tree(tree_hash, message, [parent] if parent else [])

    def _tag_commit(self, commit_ref: HashRef) -> Tag:
        # Numbering comes from the existing tag files; concurrent writers may pick the same number.
        numbers = [int(m.group(1)) for tag_file in self.tags_dir().iterdir()
                   if (m := TAG_NAME_PATTERN.match(tag_file.name))]
        tag = Tag(f'{TAG_PREFIX}{max(numbers, default=0) + 1}', commit_ref)

        write_ref(self.tags_dir() / tag.name, commit_ref)
        return tag

    @requires_repo
    def list_tags(self) -> list[Tag]:
        """Return all sequential tags, oldest first."""
        tags: list[tuple[int, Tag]] = []
        for tag_file in self.tags_dir().iterdir():
            match = TAG_NAME_PATTERN.match(tag_file.name)
            if not match or not tag_file.is_file():
                continue

            target = read_ref(tag_file)
            if not isinstance(target, HashRef):
                msg = f'Invalid tag reference stored in {tag_file}'
                raise RepositoryError(msg)

            tags.append((int(match.group(1)), Tag(tag_file.name, target)))

        return [tag for _, tag in sorted(tags, key=lambda item: item[0])]

    @requires_repo
    def log(self, tip: Ref | None = None) -> Generator[LogEntry, None, None]:
        """Generate a log of commits, starting from the specified tip and following first parents.

        :param tip: The reference to the commit to start from. If None, defaults to the current HEAD.
        :return: A generator yielding LogEntry objects representing the commits in the log.
        :raises ObjectNotFoundError: If a commit is missing.
        :raises CorruptObjectError: If a commit cannot be decoded.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        current_hash = self.resolve_ref(tip or self.head_ref())

        while current_hash:
            commit = load_commit(self.objects_dir(), current_hash)
            yield LogEntry(current_hash, commit)

            current_hash = HashRef(commit.parent) if commit.parent else None

    def _restore(self, tree_hash: str) -> None:
        restored = restore_tree(self.objects_dir(), tree_hash, self.working_dir)

        # Keep the index in step with the files just written
        entries = self._read_index_or_empty()
        for rel_path in sorted(restored):
            upsert_entry(entries, IndexEntry(rel_path, HashRef(restored[rel_path].hash)))
        write_index(self.index_file(), entries)

    def _commit_tree_hash(self, commit_ref: str) -> str:
        return load_commit(self.objects_dir(), commit_ref).tree_hash

    @requires_repo
    def checkout(self, branch: str) -> HashRef:
        """Switch HEAD to a branch and restore its files into the working directory.

        Working files that are not part of the branch are left in place.

        :param branch: The branch to switch to.
        :return: The commit the branch points to.
        :raises BranchNotFoundError: If the branch does not exist.
        :raises RepositoryIOError: If a file cannot be restored. HEAD is left unchanged.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        commit_ref = self.branch_commit(branch)

        self._restore(self._commit_tree_hash(commit_ref))
        write_ref(self.head_file(), branch_ref(branch))
        logger.info('Switched to branch %s', branch)

        return commit_ref

    @requires_repo
    def merge_in_progress(self) -> bool:
        return self.merge_head_file().exists()

    @requires_repo
    def merge_branch(self, branch: str, line_merge: bool = False) -> MergeResult:
        """Merge another branch into the current branch.

        Without conflicts, a merge commit with the current and merged commits as parents is created
        and restored. With conflicts, the merged tree (conflict markers included) is restored, a
        pending merge marker is written, and no commit is made until `merge_continue()`.

        :param branch: The branch to merge in.
        :param line_merge: Try a line-level merge of files changed on both sides before reporting a conflict.
        :return: The merge result, holding the merge commit when the merge was clean.
        :raises MergeInProgressError: If a conflicted merge awaits resolution.
        :raises DetachedHeadError: If HEAD does not point to a branch.
        :raises BranchNotFoundError: If the branch does not exist.
        :raises NoCommitsYetError: If the current branch has no commit yet.
        :raises MergeError: If a path is a file on one branch and a directory on the other.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        if self.merge_in_progress():
            msg = 'A merge is in progress; resolve it and continue first'
            raise MergeInProgressError(msg)

        current = self.current_branch()
        if current is None:
            msg = 'HEAD is detached; cannot merge'
            raise DetachedHeadError(msg)

        target_commit = self.branch_commit(branch)
        current_commit = self.head_commit()
        if current_commit is None:
            msg = f'Branch "{current}" has no commits yet'
            raise NoCommitsYetError(msg)

        base_commit = find_merge_base(self.objects_dir(), current_commit, target_commit)
        if base_commit is None:
            logger.warning('Branches %s and %s share no history', current, branch)
        else:
            logger.info('Merge base: %s', base_commit)

        objects_dir = self.objects_dir()
        base_flat = flatten_tree(objects_dir, self._commit_tree_hash(base_commit)) if base_commit else {}
        ours_flat = flatten_tree(objects_dir, self._commit_tree_hash(current_commit))
        theirs_flat = flatten_tree(objects_dir, self._commit_tree_hash(target_commit))

        merged = merge_flat_trees(objects_dir, base_flat, ours_flat, theirs_flat, line_merge)
        tree_hash = write_flat_tree(objects_dir, merged.records)

        if merged.conflicts:
            restore_tree(objects_dir, tree_hash, self.working_dir)
            write_pending_merge(self.merge_head_file(), PendingMerge(tree_hash, target_commit))
            return MergeResult(tree_hash, merged.conflicts, None, base_commit)

        message = f"Merge branch '{branch}' into '{current}'"
        self._restore(tree_hash)
        commit_ref = self.commit_tree(tree_hash, message, [current_commit, target_commit])
        logger.info('Merged %s into %s as %s', branch, current, commit_ref)

        return MergeResult(tree_hash, [], commit_ref, base_commit)

    @requires_repo
    def merge_continue(self) -> HashRef:
        """Conclude a conflicted merge once every conflict marker has been removed.

        The whole working directory is staged and committed as 'Merge resolved', with the current
        and merged commits as parents, and the pending merge marker is removed.

        :return: The merge commit reference.
        :raises NoMergeInProgressError: If no merge awaits resolution.
        :raises UnresolvedConflictsError: If any working file still holds conflict markers.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        pending = read_pending_merge(self.merge_head_file())
        if pending is None:
            msg = 'No merge in progress'
            raise NoMergeInProgressError(msg)

        conflicted = find_conflicted_files(self.working_dir, self.working_files())
        if conflicted:
            raise UnresolvedConflictsError(conflicted)

        self.stage('.')
        tree_hash = self.write_tree()

        parents = [commit for commit in (self.head_commit(), pending.target_commit) if commit]
        commit_ref = self.commit_tree(tree_hash, MERGE_RESOLVED_MESSAGE, parents)

        self.merge_head_file().unlink()
        logger.info('Merge concluded as %s', commit_ref)

        return commit_ref

    @requires_repo
    def diff_branches(self, branch1: str, branch2: str, context: int = 3) -> list[Diff]:
        """Compare the trees of two branches.

        :param branch1: The first branch.
        :param branch2: The second branch.
        :param context: The number of context lines in line diffs.
        :return: Added, removed and modified files, in path order.
        :raises BranchNotFoundError: If either branch does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        objects_dir = self.objects_dir()
        tree1 = flatten_tree(objects_dir, self._commit_tree_hash(self.branch_commit(branch1)))
        tree2 = flatten_tree(objects_dir, self._commit_tree_hash(self.branch_commit(branch2)))

        return diff_flat_trees(objects_dir, tree1, tree2, context)


def branch_ref(branch: str) -> SymRef:
    """Create a symbolic reference for a branch name.

    :param branch: The name of the branch.
    :return: A SymRef object representing the branch reference."""
    return SymRef(f'{REFS_DIR}/{HEADS_DIR}/{branch}')

