"""
Repository Sync Module.

Walks configured repositories through a provider client: branches first, then
the issue-linked commits of each selected branch. This is the caller side of
the provider contract, so it owns the retry policy for rate limiting:

- Rate-limited calls are retried after the provider's retry-after hint
- Per-repository failures are logged and the walk continues
- Authentication failures and exhausted rate limits stop the walk
"""

from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from config import settings, logger
from providers.base import GitClient
from providers.errors import AuthenticationError, GitClientError, RateLimitedError
from providers.models import Commit, Repository

T = TypeVar("T")

DEFAULT_RATE_LIMIT_WAIT = 60.0


def wait_for_retry_after(retry_state: RetryCallState) -> float:
    """
    Tenacity wait strategy honoring ``RateLimitedError.retry_after``.

    Args:
        retry_state (RetryCallState): State of the failed attempt.

    Returns:
        float: Seconds to sleep, capped by ``rate_limit_max_wait``.
    """
    error = retry_state.outcome.exception() if retry_state.outcome else None
    retry_after = getattr(error, "retry_after", None)
    if retry_after is None:
        retry_after = DEFAULT_RATE_LIMIT_WAIT
    return min(retry_after, settings.rate_limit_max_wait)


class RepositorySync:
    """
    Coordinates commit retrieval for several repositories of one provider.

    Attributes:
        client (GitClient): Authenticated provider client.
        repository_names (List[str]): ``owner/name`` entries to sync.
        branch_names (List[str]): Branches to sync, empty meaning every branch.
        max_attempts (int): Attempts per call when rate limited.
    """

    def __init__(
        self,
        client: GitClient,
        repository_names: List[str],
        branch_names: Optional[List[str]] = None,
        max_attempts: Optional[int] = None,
    ):
        """Initialize the repository sync.

        Args:
            client (GitClient): Authenticated provider client.
            repository_names (List[str]): ``owner/name`` entries to sync.
            branch_names (Optional[List[str]]): Branches to sync, every branch if empty.
            max_attempts (Optional[int]): Attempts per call when rate limited.
        """
        self.client = client
        self.repository_names = repository_names
        self.branch_names = branch_names or []
        self.max_attempts = max_attempts or settings.rate_limit_max_attempts

    async def _call(self, fn: Callable[..., Awaitable[T]], *args) -> T:
        """Await a client call, retrying only when the provider rate limits it."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RateLimitedError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_for_retry_after,
            reraise=True,
        ):
            with attempt:
                return await fn(*args)

    async def sync_repository(self, repository: Repository) -> List[Commit]:
        """
        Collect the issue-linked commits of the selected branches of one repository.

        Args:
            repository (Repository): Repository reference (owner and name).

        Returns:
            List[Commit]: Commits in branch order, then provider order.
        """
        commits: List[Commit] = []
        branches = await self._call(self.client.grab_branches, repository)

        for branch in branches:
            if self.branch_names and branch.name not in self.branch_names:
                continue
            commits.extend(
                await self._call(self.client.grab_commits, repository, branch.name)
            )

        return commits

    async def sync_repositories(self) -> Dict[str, List[Commit]]:
        """
        Sync every configured repository.

        Returns:
            Dict[str, List[Commit]]: Mapping of repository full names to commits.

        Raises:
            AuthenticationError: If the token is rejected
            RateLimitedError: If the provider still throttles after all attempts

        Note:
            Other failures are logged per repository and the remaining
            repositories are still processed.
        """
        results = {}
        for full_name in self.repository_names:
            try:
                owner, name = full_name.strip().strip("/").split("/")[-2:]
                repository = Repository(
                    owner=owner,
                    name=name,
                    full_name=f"{owner}/{name}",
                    location=self.client.location,
                )

                logger.info({"message": "Syncing repository", "repository": full_name})

                commits = await self.sync_repository(repository)
                results[repository.full_name] = commits

                logger.info(
                    {
                        "message": "Repository synced",
                        "repository": repository.full_name,
                        "commits": len(commits),
                    }
                )

            except (AuthenticationError, RateLimitedError):
                raise
            except (GitClientError, ValueError) as e:
                logger.error(
                    {
                        "message": "Failed to sync repository",
                        "repository": full_name,
                        "error": str(e),
                    }
                )

        return results
