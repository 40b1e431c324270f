"""Exceptions raised by libknyt."""


class RepositoryError(Exception):
    """Exception raised for repository-related errors."""


class RepositoryNotFoundError(RepositoryError):
    """Exception raised when a repository is not found."""


class RepositoryIOError(RepositoryError):
    """Exception raised when the underlying filesystem fails."""


class ObjectNotFoundError(RepositoryError):
    """Exception raised when an object is not present in the object store."""


class CorruptObjectError(RepositoryError):
    """Exception raised when a stored object cannot be decompressed or parsed."""


class BranchNotFoundError(RepositoryError):
    """Exception raised when a branch ref does not exist."""


class BranchExistsError(RepositoryError):
    """Exception raised when creating a branch that already exists."""


class DetachedHeadError(RepositoryError):
    """Exception raised when an operation needs HEAD to point at a branch."""


class NoCommitsYetError(RepositoryError):
    """Exception raised when the current branch has no commit."""


class MissingMessageError(RepositoryError, ValueError):
    """Exception raised when a commit message is empty."""


class IndexMissingError(RepositoryError):
    """Exception raised when the staging index file does not exist."""


class UnresolvedConflictsError(RepositoryError):
    """Exception raised when conflict markers remain in the working directory."""

    def __init__(self, paths: list[str]) -> None:
        self.paths = paths
        super().__init__(f'Unresolved conflicts in: {", ".join(paths)}')


class MergeError(RepositoryError):
    """Exception raised for merge-related errors."""


class MergeInProgressError(MergeError):
    """Exception raised when a merge is started while another one awaits resolution."""


class NoMergeInProgressError(MergeError):
    """Exception raised when continuing a merge that was never started."""
