"""
Abstract Base Class for Git Provider Clients.

Defines the contract every hosting provider integration (GitHub, GitLab,
Bitbucket...) implements. Orchestration code only talks to this interface and
always receives the normalized records from ``providers.models``.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, List, Optional, Sequence, TypeVar

from config import logger
from filters.issue_filter import is_commit_issue
from providers.errors import NotFoundError
from providers.models import (
    Branch,
    Commit,
    Diff,
    Location,
    PullRequest,
    Repository,
    WebhookRegistration,
)

T = TypeVar("T")
R = TypeVar("R")


class GitClient(ABC):
    """
    Abstract base class for Git provider clients.

    Implementations should handle:
    - Authentication with the provider
    - Listing repositories, branches and issue-linked commits
    - Diff retrieval through the provider's diff media type
    - Branch, pull request and webhook creation

    Attributes:
        location (Location): Tag stamped on every repository the client returns.
        hook_secrets (Optional[Callable[[str], str]]): Webhook secret derivation,
            keyed by internal repository id.
        callback_urls (Optional[Callable[[str], str]]): Webhook callback URL
            resolution, keyed by internal repository id.
        commit_filter (Callable[[Optional[str]], bool]): Issue-linkage predicate
            over commit messages.
        concurrency (int): Commits whose detail and patch are fetched in parallel.
    """

    location: Location

    def __init__(
        self,
        hook_secrets: Optional[Callable[[str], str]] = None,
        callback_urls: Optional[Callable[[str], str]] = None,
        commit_filter: Callable[[Optional[str]], bool] = is_commit_issue,
        concurrency: int = 1,
    ):
        self.hook_secrets = hook_secrets
        self.callback_urls = callback_urls
        self.commit_filter = commit_filter
        self.concurrency = max(1, concurrency)

    @abstractmethod
    async def authenticate(self) -> bool:
        """
        Attach the access token to subsequent calls and verify it.

        Returns:
            bool: True once authenticated

        Raises:
            AuthenticationError: If the token is missing, invalid or revoked
        """
        pass

    @abstractmethod
    def iter_repositories(self) -> AsyncIterator[Repository]:
        """Yield repositories visible to the authenticated principal as pages arrive."""
        pass

    async def grab_repositories(self) -> List[Repository]:
        """List repositories visible to the authenticated principal."""
        return [repository async for repository in self.iter_repositories()]

    @abstractmethod
    async def grab_branches(self, repository: Repository) -> List[Branch]:
        """
        List branches of a repository.

        Raises:
            NotFoundError: If the repository does not exist or is not accessible
        """
        pass

    @abstractmethod
    def iter_commits(self, repository: Repository, branch: str) -> AsyncIterator[Commit]:
        """
        Yield issue-linked commits reachable from ``branch``, in provider order.

        Each yielded commit carries its detail (author, stats) and unified diff.
        """
        pass

    async def grab_commits(self, repository: Repository, branch: str) -> List[Commit]:
        """List issue-linked commits reachable from ``branch``."""
        return [commit async for commit in self.iter_commits(repository, branch)]

    @abstractmethod
    async def grab_commit(self, repository: Repository, sha: str) -> List[Commit]:
        """
        Fetch one commit by sha.

        Returns:
            List[Commit]: The commit, or an empty list when it is not found or is
                not issue-linked
        """
        pass

    @abstractmethod
    async def grab_commit_patch(self, sha: str, repository: Repository) -> Diff:
        """Fetch the unified diff of one commit (empty diffs are not an error)."""
        pass

    @abstractmethod
    async def make_pull_request(
        self,
        repository: Repository,
        source_branch: str,
        target_branch: str,
        title: str,
    ) -> PullRequest:
        """
        Open a pull request from ``source_branch`` into ``target_branch``.

        Raises:
            ConflictError: If the branches are identical or cannot be merged
        """
        pass

    @abstractmethod
    async def make_branch(
        self, repository: Repository, source_branch: Branch, title: str
    ) -> str:
        """
        Create branch ``title`` pointing at ``source_branch.ref``.

        Returns:
            str: The new branch name

        Raises:
            ConflictError: If the branch already exists
        """
        pass

    @abstractmethod
    async def grab_diff(
        self, repository: Repository, first_commit: str, second_commit: str
    ) -> str:
        """Fetch the raw compare diff between two commits."""
        pass

    async def create_repository_hook(self, repository: Repository) -> WebhookRegistration:
        """
        Register a webhook for push and pull request events.

        Invoked by repository onboarding. The signing secret is derived from the
        internal repository id and is never returned.

        Args:
            repository (Repository): Repository with ``internal_id`` set.

        Returns:
            WebhookRegistration: Provider hook id and registered callback URL

        Raises:
            ValueError: If the repository has no internal id or the webhook
                collaborators are not configured
            ConflictError: If the provider already has this hook
        """
        if not repository.internal_id:
            raise ValueError("Repository internal_id is required to register a webhook")
        if self.hook_secrets is None or self.callback_urls is None:
            raise ValueError("Webhook secret deriver and callback URL resolver are required")

        callback_url = self.callback_urls(repository.internal_id)
        secret = self.hook_secrets(repository.internal_id)

        registration = await self._create_repository_hook_request(
            repository, callback_url, secret
        )
        logger.info(
            {
                "message": "Repository webhook created",
                "repository": f"{repository.owner}/{repository.name}",
                "hook_id": registration.id,
                "url": registration.url,
            }
        )
        return registration

    async def delete_repository_hook(self, hook_id: str, repository: Repository) -> None:
        """
        Remove a webhook by provider hook id.

        A hook that is already gone counts as removed, so cleanup can be retried
        after a partial failure.
        """
        try:
            await self._delete_repository_hook_request(hook_id, repository)
        except NotFoundError:
            logger.info(
                {
                    "message": "Repository webhook already removed",
                    "repository": f"{repository.owner}/{repository.name}",
                    "hook_id": hook_id,
                }
            )
            return

        logger.info(
            {
                "message": "Repository webhook deleted",
                "repository": f"{repository.owner}/{repository.name}",
                "hook_id": hook_id,
            }
        )

    @abstractmethod
    async def _create_repository_hook_request(
        self, repository: Repository, callback_url: str, secret: str
    ) -> WebhookRegistration:
        """Provider request registering the webhook."""
        pass

    @abstractmethod
    async def _delete_repository_hook_request(
        self, hook_id: str, repository: Repository
    ) -> None:
        """Provider request removing the webhook."""
        pass

    async def _gather_ordered(self, items: Sequence[T], fetch: Callable[[T], R]) -> List[R]:
        """
        Run a blocking ``fetch`` for every item on worker threads.

        Results come back in input order; the first exception propagates.
        """
        return await asyncio.gather(*(asyncio.to_thread(fetch, item) for item in items))
