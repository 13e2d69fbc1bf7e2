"""Abstract interface for fetching files from a repository host."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class FileFetcher(Protocol):
    """Read-only access to one repository on a remote host.

    Implementations (GitHub, GitLab, a local mirror, ...) are bound to a
    single repository at construction time.
    """

    async def fetch_file(self, path: str, revision: str) -> str | None:
        """
        Fetch the text of a file at a given revision.

        Args:
            path: Path to the file, relative to the repository root
            revision: Commit identifier to read the file at

        Returns:
            File contents, or None if the file does not exist at that revision

        Raises:
            TransportError: On a genuine failure talking to the host. A
                missing file is never reported as an error.
        """
        ...

    async def get_latest_revision(self, branch: str | None = None) -> str:
        """
        Resolve the newest commit on a branch.

        Args:
            branch: Branch name (default: the configured default branch)

        Returns:
            Commit identifier

        Raises:
            TransportError: If the host cannot be reached or refuses the request
        """
        ...
