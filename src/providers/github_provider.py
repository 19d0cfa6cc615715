"""
GitHub Provider Client.

This module implements the GitClient contract for GitHub. JSON metadata goes
through PyGithub; unified diffs are negotiated over plain HTTP with the
``application/vnd.github.diff`` media type, because the JSON ``files[].patch``
entries are truncated or omitted for large commits.

Listing commits costs one paginated listing plus two requests (detail and
diff) per issue-linked commit. Those per-commit requests run in small ordered
batches on worker threads.
"""

from functools import partial
from typing import Any, AsyncIterator, Callable, List, Optional
from urllib.parse import quote

import requests
from github import Auth, Github
from github.Repository import Repository as GithubRepository

from config import settings, logger
from filters.issue_filter import is_commit_issue
from providers.base import GitClient
from providers.errors import (
    AuthenticationError,
    ConflictError,
    GitClientError,
    NotFoundError,
    RateLimitedError,
    provider_errors,
    raise_for_response,
)
from providers.models import (
    Branch,
    Commit,
    CommitAuthor,
    CommitFile,
    Diff,
    Location,
    PullRequest,
    Repository,
    WebhookRegistration,
)
from providers.payload import dig, timestamp


class GitHubClient(GitClient):
    """
    GitHubClient talks to the GitHub REST API and normalizes its payloads.
    """

    location = Location.GITHUB

    DIFF_MEDIA_TYPE = "application/vnd.github.diff"
    API_VERSION = "2022-11-28"
    HOOK_EVENTS = ("push", "pull_request")

    def __init__(
        self,
        access_token: Optional[str] = None,
        hook_secrets: Optional[Callable[[str], str]] = None,
        callback_urls: Optional[Callable[[str], str]] = None,
        commit_filter: Callable[[Optional[str]], bool] = is_commit_issue,
        concurrency: Optional[int] = None,
        github: Optional[Github] = None,
        http: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        per_page: Optional[int] = None,
    ):
        """Initialize the GitHub client.

        Args:
            access_token (Optional[str]): GitHub token, defaults to the configured one.
            hook_secrets (Optional[Callable[[str], str]]): Webhook secret deriver.
            callback_urls (Optional[Callable[[str], str]]): Webhook callback URL resolver.
            commit_filter (Callable[[Optional[str]], bool]): Issue-linkage predicate.
            concurrency (Optional[int]): Parallel per-commit fetches.
            github (Optional[Github]): Pre-built PyGithub client.
            http (Optional[requests.Session]): Pre-built session for diff requests.
            base_url (Optional[str]): REST API root.
            timeout (Optional[int]): Per-request timeout in seconds.
            per_page (Optional[int]): Page size for listings.
        """
        super().__init__(
            hook_secrets=hook_secrets,
            callback_urls=callback_urls,
            commit_filter=commit_filter,
            concurrency=concurrency or settings.commit_fetch_concurrency,
        )
        self.access_token = access_token or settings.github_token.get_secret_value()
        self.base_url = (base_url or settings.github_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.per_page = per_page or settings.per_page
        self.github = github
        self.http = http

    async def authenticate(self) -> bool:
        """
        Attach the token to the PyGithub client and the diff session, then verify it.

        Returns:
            bool: True once the token is accepted

        Raises:
            AuthenticationError: If the token is missing or rejected
        """
        if not self.access_token:
            raise AuthenticationError("GitHub access token is not configured")

        if self.github is None:
            # Retries are a caller-level policy
            self.github = Github(
                auth=Auth.Token(self.access_token),
                base_url=self.base_url,
                timeout=self.timeout,
                per_page=self.per_page,
                retry=None,
            )
        if self.http is None:
            self.http = requests.Session()
        self.http.headers.update(
            {
                "Authorization": f"Bearer {self.access_token}",
                "X-GitHub-Api-Version": self.API_VERSION,
            }
        )

        with provider_errors("authenticate"):
            login = self.github.get_user().login

        logger.info({"message": "Authenticated with GitHub", "login": login})
        return True

    def _session(self) -> Github:
        if self.github is None:
            raise AuthenticationError("GitHub client is not authenticated")
        return self.github

    def _repo(self, repository: Repository) -> GithubRepository:
        # Lazy: no request until the repository is actually used
        return self._session().get_repo(f"{repository.owner}/{repository.name}", lazy=True)

    def _to_repository(self, item: Any) -> Repository:
        """Convert a GitHub repository payload to the normalized record."""
        return Repository(
            id=dig(item, "id"),
            name=dig(item, "name"),
            full_name=dig(item, "full_name"),
            url=dig(item, "html_url"),
            description=dig(item, "description"),
            owner=dig(item, "owner.login"),
            owner_url=dig(item, "owner.html_url"),
            created_at=timestamp(dig(item, "created_at")),
            pushed_at=timestamp(dig(item, "pushed_at")),
            updated_at=timestamp(dig(item, "updated_at")),
            location=self.location,
        )

    def _to_commit(
        self,
        source: Any,
        patch: str,
        stats: Optional[dict],
        files: Optional[List[dict]] = None,
    ) -> Commit:
        """Convert a GitHub commit payload to the normalized record.

        Args:
            source (Any): Raw commit detail, or the listing entry when the detail
                could not be fetched.
            patch (str): Unified diff, empty when unavailable.
            stats (Optional[dict]): Provider change statistics.
            files (Optional[List[dict]]): Raw ``files[]`` of the commit detail.
        """
        return Commit(
            sha=dig(source, "sha"),
            comment=dig(source, "commit.message", ""),
            url=dig(source, "html_url"),
            author=CommitAuthor(
                id=dig(source, "committer.id"),
                name=dig(source, "commit.committer.name"),
                email=dig(source, "commit.committer.email"),
                username=dig(source, "committer.login"),
                avatar_url=dig(source, "committer.avatar_url"),
                url=dig(source, "committer.html_url"),
            ),
            stats=stats,
            patch=patch,
            files=[
                CommitFile(
                    name=dig(item, "filename"),
                    status=dig(item, "status"),
                    additions=dig(item, "additions"),
                    deletions=dig(item, "deletions"),
                    contents_url=dig(item, "contents_url"),
                )
                for item in files or []
            ],
            timestamp=timestamp(dig(source, "commit.committer.date")),
        )

    async def iter_repositories(self) -> AsyncIterator[Repository]:
        """Yield repositories of the authenticated user, page by page."""
        github = self._session()
        with provider_errors("grab repositories"):
            for item in github.get_user().get_repos():
                yield self._to_repository(item)

    async def grab_branches(self, repository: Repository) -> List[Branch]:
        """
        List branches of a repository.

        Raises:
            NotFoundError: If the repository does not exist or access is denied
        """
        repo = self._repo(repository)
        with provider_errors(f"grab branches of {repository.owner}/{repository.name}"):
            return [
                Branch(name=dig(branch, "name"), ref=dig(branch, "commit.sha"))
                for branch in repo.get_branches()
            ]

    async def iter_commits(self, repository: Repository, branch: str) -> AsyncIterator[Commit]:
        """
        Yield issue-linked commits reachable from ``branch``.

        Commits failing the issue-linkage predicate are skipped before any extra
        request is made. Survivors are completed in batches of ``concurrency``.

        Raises:
            AuthenticationError: Aborts the whole listing
            RateLimitedError: Aborts the whole listing
            NotFoundError: If the repository or branch does not exist
        """
        repo = self._repo(repository)
        fetch = partial(self._commit_details, repo, repository)
        operation = f"grab commits of {repository.owner}/{repository.name}@{branch}"

        pending = []
        with provider_errors(operation):
            for item in repo.get_commits(sha=branch):
                if not self.commit_filter(dig(item, "commit.message")):
                    continue

                pending.append(item)
                if len(pending) >= self.concurrency:
                    for commit in await self._gather_ordered(pending, fetch):
                        yield commit
                    pending = []

        if pending:
            for commit in await self._gather_ordered(pending, fetch):
                yield commit

    def _commit_details(self, repo: GithubRepository, repository: Repository, item: Any) -> Commit:
        """Fetch detail and diff of a listed commit, degrading on non-fatal errors."""
        sha = dig(item, "sha")
        try:
            with provider_errors(f"grab commit {sha}"):
                detail = repo.get_commit(sha).raw_data
        except (AuthenticationError, RateLimitedError):
            raise
        except GitClientError as e:
            logger.warning(
                {
                    "message": "Commit detail unavailable, using listing entry",
                    "repository": f"{repository.owner}/{repository.name}",
                    "sha": sha,
                    "error": str(e),
                }
            )
            return self._to_commit(item, patch="", stats=None)

        patch = self._patch_or_empty(sha, repository)
        return self._to_commit(
            detail, patch=patch, stats=dig(detail, "stats"), files=dig(detail, "files")
        )

    def _patch_or_empty(self, sha: str, repository: Repository) -> str:
        try:
            return self._fetch_patch(sha, repository)
        except (AuthenticationError, RateLimitedError):
            raise
        except GitClientError as e:
            logger.warning(
                {
                    "message": "Commit patch unavailable",
                    "repository": f"{repository.owner}/{repository.name}",
                    "sha": sha,
                    "error": str(e),
                }
            )
            return ""

    def _fetch_patch(self, sha: str, repository: Repository) -> str:
        path = "/".join(
            [
                "repos",
                quote(repository.owner, safe=""),
                quote(repository.name, safe=""),
                "commits",
                quote(sha, safe=""),
            ]
        )
        return self._get_diff(path, f"grab patch of {sha}")

    def _get_diff(self, path: str, operation: str) -> str:
        """GET ``path`` with the diff media type and return the raw body."""
        if self.http is None:
            raise AuthenticationError("GitHub client is not authenticated")

        with provider_errors(operation):
            response = self.http.get(
                f"{self.base_url}/{path}",
                headers={"Accept": self.DIFF_MEDIA_TYPE},
                timeout=self.timeout,
            )
        raise_for_response(response, operation)
        return response.text or ""

    async def grab_commit(self, repository: Repository, sha: str) -> List[Commit]:
        """
        Fetch one issue-linked commit.

        A single detail request is made; the resolved sha from that response is
        used for the diff and the returned record.

        Returns:
            List[Commit]: One commit, or nothing when not found or not issue-linked
        """
        repo = self._repo(repository)
        try:
            with provider_errors(f"grab commit {sha}"):
                detail = repo.get_commit(sha).raw_data
        except (NotFoundError, ConflictError) as e:
            # Unknown shas come back as 422 "No commit found for SHA"
            if isinstance(e, ConflictError) and e.status != 422:
                raise

            logger.info(
                {
                    "message": "Commit not found",
                    "repository": f"{repository.owner}/{repository.name}",
                    "sha": sha,
                }
            )
            return []

        if not self.commit_filter(dig(detail, "commit.message")):
            return []

        resolved = dig(detail, "sha", sha)
        patch = self._patch_or_empty(resolved, repository)
        return [
            self._to_commit(
                detail, patch=patch, stats=dig(detail, "stats"), files=dig(detail, "files")
            )
        ]

    async def grab_commit_patch(self, sha: str, repository: Repository) -> Diff:
        """Fetch the unified diff of one commit."""
        return Diff(sha=sha, patch=self._fetch_patch(sha, repository))

    async def grab_diff(
        self, repository: Repository, first_commit: str, second_commit: str
    ) -> str:
        """Fetch the three-dot compare diff ``first_commit...second_commit``."""
        path = "/".join(
            [
                "repos",
                quote(repository.owner, safe=""),
                quote(repository.name, safe=""),
                "compare",
                f"{quote(first_commit, safe='')}...{quote(second_commit, safe='')}",
            ]
        )
        return self._get_diff(path, f"grab diff {first_commit}...{second_commit}")

    async def make_pull_request(
        self,
        repository: Repository,
        source_branch: str,
        target_branch: str,
        title: str,
    ) -> PullRequest:
        """
        Open a pull request.

        Raises:
            ConflictError: If the branches are identical or GitHub rejects the pair
        """
        if source_branch == target_branch:
            raise ConflictError(
                f"Cannot open a pull request from {source_branch} into itself"
            )

        repo = self._repo(repository)
        with provider_errors(f"make pull request {source_branch} -> {target_branch}"):
            pull = repo.create_pull(base=target_branch, head=source_branch, title=title)
            raw = pull.raw_data

        logger.info(
            {
                "message": "Pull request created",
                "repository": f"{repository.owner}/{repository.name}",
                "number": dig(raw, "number"),
            }
        )
        return PullRequest(
            source_branch=source_branch,
            target_branch=target_branch,
            title=title,
            id=dig(raw, "id"),
            number=dig(raw, "number"),
            url=dig(raw, "html_url"),
            raw=raw,
        )

    async def make_branch(
        self, repository: Repository, source_branch: Branch, title: str
    ) -> str:
        """
        Create ``refs/heads/<title>`` at the head of ``source_branch``.

        Raises:
            ConflictError: If the reference already exists
        """
        repo = self._repo(repository)
        with provider_errors(f"make branch {title}"):
            repo.create_git_ref(ref=f"refs/heads/{title}", sha=source_branch.ref)
        return title

    async def _create_repository_hook_request(
        self, repository: Repository, callback_url: str, secret: str
    ) -> WebhookRegistration:
        repo = self._repo(repository)
        with provider_errors(f"create hook on {repository.owner}/{repository.name}"):
            hook = repo.create_hook(
                name="web",
                config={
                    "url": callback_url,
                    "content_type": "json",
                    "secret": secret,
                    "insecure_ssl": "0",
                },
                events=list(self.HOOK_EVENTS),
                active=True,
            )

        return WebhookRegistration(
            id=hook.id,
            name=hook.name,
            events=list(hook.events or []),
            url=dig(hook.config, "url", callback_url),
            repository_id=repository.internal_id,
        )

    async def _delete_repository_hook_request(
        self, hook_id: str, repository: Repository
    ) -> None:
        if not str(hook_id).isdigit():
            raise ValueError(f"GitHub hook id must be numeric, got {hook_id!r}")
        if self.http is None:
            raise AuthenticationError("GitHub client is not authenticated")

        operation = f"delete hook {hook_id}"
        path = "/".join(
            [
                "repos",
                quote(repository.owner, safe=""),
                quote(repository.name, safe=""),
                "hooks",
                str(hook_id),
            ]
        )
        with provider_errors(operation):
            response = self.http.delete(f"{self.base_url}/{path}", timeout=self.timeout)
        raise_for_response(response, operation)
