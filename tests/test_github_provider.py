"""
GitHub Client Test Suite.

This module contains tests for the GitHubClient class, covering:
- Authentication
- Repository and branch normalization
- Issue-linked commit listing with detail and diff fetches
- Degradation and abort rules for per-commit failures
- Diff retrieval, branch and pull request creation
"""

import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import Mock

import requests
from github import BadCredentialsException, GithubException, UnknownObjectException

from providers.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
)
from providers.github_provider import GitHubClient
from providers.models import Branch, Location, Repository

BASE_URL = "https://api.github.com"
DIFF_ACCEPT = {"Accept": "application/vnd.github.diff"}
PATCH = "diff --git a/app.py b/app.py\n--- a/app.py\n+++ b/app.py\n@@ -1 +1 @@\n-bug\n+fixed\n"
COMMIT_DATE = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def listed_commit(sha, message):
    """Commit entry as PyGithub yields it from a commit listing."""
    return SimpleNamespace(
        sha=sha,
        html_url=f"https://github.com/acme/widgets/commit/{sha}",
        commit=SimpleNamespace(
            message=message,
            committer=SimpleNamespace(
                name="Jane Doe", email="jane@example.com", date=COMMIT_DATE
            ),
        ),
        committer=SimpleNamespace(
            id=7,
            login="jdoe",
            avatar_url="https://avatars.githubusercontent.com/u/7",
            html_url="https://github.com/jdoe",
        ),
    )


def commit_detail(sha, message):
    """Fully fetched commit, exposing the raw JSON payload."""
    return Mock(
        sha=sha,
        raw_data={
            "sha": sha,
            "html_url": f"https://github.com/acme/widgets/commit/{sha}",
            "commit": {
                "message": message,
                "committer": {
                    "name": "Jane Doe",
                    "email": "jane@example.com",
                    "date": "2024-01-02T03:04:05Z",
                },
            },
            "committer": {
                "id": 7,
                "login": "jdoe",
                "avatar_url": "https://avatars.githubusercontent.com/u/7",
                "html_url": "https://github.com/jdoe",
            },
            "stats": {"total": 2, "additions": 1, "deletions": 1},
            "files": [
                {
                    "filename": "app.py",
                    "status": "modified",
                    "additions": 1,
                    "deletions": 1,
                    "contents_url": f"{BASE_URL}/repos/acme/widgets/contents/app.py?ref={sha}",
                    "patch": "@@ -1 +1 @@\n-bug\n+fixed",
                }
            ],
        },
    )


def diff_response(text, status_code=200, headers=None):
    """Raw diff response from the HTTP session."""
    response = Mock(status_code=status_code, text=text, headers=headers or {})
    response.json.side_effect = ValueError("not json")
    return response


@pytest.fixture
def repository():
    """Repository reference as orchestration code builds it."""
    return Repository(owner="acme", name="widgets")


@pytest.fixture
def gh_repo():
    """Mock PyGithub repository."""
    return Mock()


@pytest.fixture
def mock_github(gh_repo):
    """Mock PyGithub client."""
    github = Mock()
    github.get_repo.return_value = gh_repo
    return github


@pytest.fixture
def mock_http():
    """Mock HTTP session answering diff requests."""
    http = Mock()
    http.headers = {}
    http.get.return_value = diff_response(PATCH)
    return http


@pytest.fixture
def client(mock_github, mock_http):
    """Create GitHubClient instance for testing."""
    return GitHubClient(
        access_token="token",
        github=mock_github,
        http=mock_http,
        base_url=BASE_URL,
        timeout=10,
        concurrency=2,
    )


@pytest.mark.asyncio
async def test_authenticate_attaches_token(client, mock_github, mock_http):
    """Test that authentication verifies the token and sets session headers."""
    mock_github.get_user.return_value = Mock(login="jdoe")

    assert await client.authenticate() is True
    assert mock_http.headers["Authorization"] == "Bearer token"
    assert mock_http.headers["X-GitHub-Api-Version"] == "2022-11-28"


@pytest.mark.asyncio
async def test_authenticate_bad_credentials(client, mock_github):
    """Test that a rejected token surfaces as AuthenticationError."""
    mock_github.get_user.side_effect = BadCredentialsException(
        401, {"message": "Bad credentials"}, {}
    )

    with pytest.raises(AuthenticationError) as exc_info:
        await client.authenticate()

    assert exc_info.value.status == 401


@pytest.mark.asyncio
async def test_authenticate_without_token(client, mock_github):
    """Test that a missing token fails before any request."""
    client.access_token = ""

    with pytest.raises(AuthenticationError):
        await client.authenticate()

    mock_github.get_user.assert_not_called()


@pytest.mark.asyncio
async def test_calls_require_authentication(repository):
    """Test that an unauthenticated client refuses provider calls."""
    client = GitHubClient(access_token="token", base_url=BASE_URL)

    with pytest.raises(AuthenticationError):
        await client.grab_branches(repository)


@pytest.mark.asyncio
async def test_grab_repositories_tags_location(client, mock_github):
    """Test repository normalization and location tagging."""
    mock_github.get_user.return_value.get_repos.return_value = [
        SimpleNamespace(
            id=1296269,
            name="widgets",
            full_name="acme/widgets",
            html_url="https://github.com/acme/widgets",
            description=None,
            owner=SimpleNamespace(login="acme", html_url="https://github.com/acme"),
            created_at=datetime(2011, 1, 26, 19, 1, 12, tzinfo=timezone.utc),
            pushed_at=datetime(2011, 1, 26, 19, 6, 43, tzinfo=timezone.utc),
            updated_at=datetime(2011, 1, 26, 19, 14, 43, tzinfo=timezone.utc),
        )
    ]

    repositories = await client.grab_repositories()

    assert len(repositories) == 1
    repo = repositories[0]
    assert repo.location == Location.GITHUB
    assert repo.owner == "acme"
    assert repo.full_name == "acme/widgets"
    assert repo.description is None
    assert repo.created_at == "2011-01-26T19:01:12Z"
    assert repo.model_dump(by_alias=True)["ownerUrl"] == "https://github.com/acme"


@pytest.mark.asyncio
async def test_grab_branches(client, mock_github, gh_repo, repository):
    """Test branch normalization."""
    gh_repo.get_branches.return_value = [
        SimpleNamespace(name="main", commit=SimpleNamespace(sha="abc123")),
        SimpleNamespace(name="dev", commit=SimpleNamespace(sha="fed321")),
    ]

    branches = await client.grab_branches(repository)

    assert branches == [Branch(name="main", ref="abc123"), Branch(name="dev", ref="fed321")]
    mock_github.get_repo.assert_called_once_with("acme/widgets", lazy=True)


@pytest.mark.asyncio
async def test_grab_branches_missing_repository(client, gh_repo, repository):
    """Test that a missing repository raises NotFoundError."""
    gh_repo.get_branches.side_effect = UnknownObjectException(
        404, {"message": "Not Found"}, {}
    )

    with pytest.raises(NotFoundError):
        await client.grab_branches(repository)


@pytest.mark.asyncio
async def test_grab_commits_keeps_issue_linked_commits(
    client, gh_repo, mock_http, repository
):
    """Test the commit listing end to end: filter, detail and diff."""
    gh_repo.get_commits.return_value = [
        listed_commit("abc123", "Fix bug"),
        listed_commit("def456", "Fix #42 bug"),
    ]
    gh_repo.get_commit.return_value = commit_detail("def456", "Fix #42 bug")

    commits = await client.grab_commits(repository, "main")

    assert len(commits) == 1
    commit = commits[0]
    assert commit.sha == "def456"
    assert commit.comment == "Fix #42 bug"
    assert commit.patch == PATCH
    assert commit.author.username == "jdoe"
    assert commit.author.name == "Jane Doe"
    assert commit.stats == {"total": 2, "additions": 1, "deletions": 1}
    assert commit.timestamp == "2024-01-02T03:04:05Z"
    assert len(commit.files) == 1
    changed = commit.files[0]
    assert changed.name == "app.py"
    assert changed.status == "modified"
    assert (changed.additions, changed.deletions) == (1, 1)
    assert changed.contents_url == f"{BASE_URL}/repos/acme/widgets/contents/app.py?ref=def456"
    assert changed.model_dump(by_alias=True)["contentsUrl"] == changed.contents_url

    gh_repo.get_commits.assert_called_once_with(sha="main")
    gh_repo.get_commit.assert_called_once_with("def456")
    mock_http.get.assert_called_once_with(
        f"{BASE_URL}/repos/acme/widgets/commits/def456",
        headers=DIFF_ACCEPT,
        timeout=10,
    )


@pytest.mark.asyncio
async def test_grab_commits_preserves_order(client, gh_repo, repository):
    """Test that batched detail fetches keep the provider order."""
    shas = ["a1", "b2", "c3", "d4", "e5"]
    gh_repo.get_commits.return_value = [
        listed_commit(sha, f"Fix #{n}") for n, sha in enumerate(shas, start=1)
    ]
    gh_repo.get_commit.side_effect = lambda sha: commit_detail(sha, f"Fix #{sha}")

    commits = await client.grab_commits(repository, "main")

    assert [commit.sha for commit in commits] == shas


@pytest.mark.asyncio
async def test_grab_commits_patch_failure_degrades(client, gh_repo, mock_http, repository):
    """Test that a failed diff fetch yields an empty patch, not a failed listing."""
    gh_repo.get_commits.return_value = [
        listed_commit("a1", "Fix #1"),
        listed_commit("b2", "Fix #2"),
    ]
    gh_repo.get_commit.side_effect = lambda sha: commit_detail(sha, "Fix #1")
    mock_http.get.side_effect = [
        requests.ConnectionError("connection reset"),
        diff_response(PATCH),
    ]

    commits = await client.grab_commits(repository, "main")

    assert len(commits) == 2
    patches = {commit.sha: commit.patch for commit in commits}
    assert sorted(patches.values()) == ["", PATCH]


@pytest.mark.asyncio
async def test_grab_commits_detail_failure_uses_listing(
    client, gh_repo, mock_http, repository
):
    """Test that a failed detail fetch falls back to the listing entry."""
    gh_repo.get_commits.return_value = [listed_commit("a1", "Fix #1")]
    gh_repo.get_commit.side_effect = GithubException(502, {"message": "Bad Gateway"}, {})

    commits = await client.grab_commits(repository, "main")

    assert len(commits) == 1
    commit = commits[0]
    assert commit.sha == "a1"
    assert commit.stats is None
    assert commit.patch == ""
    assert commit.files == []
    assert commit.author.username == "jdoe"
    assert commit.timestamp == "2024-01-02T03:04:05Z"
    mock_http.get.assert_not_called()


@pytest.mark.asyncio
async def test_grab_commits_rate_limit_aborts(client, gh_repo, mock_http, repository):
    """Test that throttling aborts the listing with a retry-after hint."""
    gh_repo.get_commits.return_value = [listed_commit("a1", "Fix #1")]
    gh_repo.get_commit.return_value = commit_detail("a1", "Fix #1")
    mock_http.get.return_value = diff_response("", 429, {"Retry-After": "30"})

    with pytest.raises(RateLimitedError) as exc_info:
        await client.grab_commits(repository, "main")

    assert exc_info.value.retry_after == 30.0


@pytest.mark.asyncio
async def test_grab_commits_auth_failure_aborts(client, gh_repo, repository):
    """Test that a revoked token aborts the listing."""
    gh_repo.get_commits.return_value = [listed_commit("a1", "Fix #1")]
    gh_repo.get_commit.side_effect = BadCredentialsException(
        401, {"message": "Bad credentials"}, {}
    )

    with pytest.raises(AuthenticationError):
        await client.grab_commits(repository, "main")


@pytest.mark.asyncio
async def test_grab_commits_missing_branch(client, gh_repo, repository):
    """Test that listing an unknown branch raises NotFoundError."""
    gh_repo.get_commits.side_effect = UnknownObjectException(
        404, {"message": "Not Found"}, {}
    )

    with pytest.raises(NotFoundError):
        await client.grab_commits(repository, "missing")


@pytest.mark.asyncio
async def test_grab_commit_issue_linked(client, gh_repo, repository):
    """Test that a single issue-linked commit is returned with its resolved sha."""
    gh_repo.get_commit.return_value = commit_detail("def456abcdef", "Refs GH-7")

    commits = await client.grab_commit(repository, "def456")

    assert len(commits) == 1
    assert commits[0].sha == "def456abcdef"
    assert commits[0].patch == PATCH
    gh_repo.get_commit.assert_called_once_with("def456")


@pytest.mark.asyncio
async def test_grab_commit_filtered_out(client, gh_repo, mock_http, repository):
    """Test that a commit without issue reference yields nothing."""
    gh_repo.get_commit.return_value = commit_detail("abc123", "Fix bug")

    assert await client.grab_commit(repository, "abc123") == []
    mock_http.get.assert_not_called()


@pytest.mark.asyncio
async def test_grab_commit_not_found(client, gh_repo, repository):
    """Test that an unknown sha yields nothing instead of an error."""
    gh_repo.get_commit.side_effect = UnknownObjectException(
        404, {"message": "Not Found"}, {}
    )

    assert await client.grab_commit(repository, "nope") == []


@pytest.mark.asyncio
async def test_grab_commit_unknown_sha(client, gh_repo, mock_http, repository):
    """Test that GitHub's 422 for an unknown sha yields nothing."""
    gh_repo.get_commit.side_effect = GithubException(
        422, {"message": "No commit found for SHA: deadbeef"}, {}
    )

    assert await client.grab_commit(repository, "deadbeef") == []
    mock_http.get.assert_not_called()


@pytest.mark.asyncio
async def test_grab_commit_conflict_propagates(client, gh_repo, repository):
    """Test that other conflicts are not mistaken for a missing commit."""
    gh_repo.get_commit.side_effect = GithubException(409, {"message": "Git Repository is empty."}, {})

    with pytest.raises(ConflictError):
        await client.grab_commit(repository, "abc123")


@pytest.mark.asyncio
async def test_grab_commit_patch_empty_diff(client, mock_http, repository):
    """Test that an empty diff is returned as an empty patch."""
    mock_http.get.return_value = diff_response("")

    diff = await client.grab_commit_patch("abc123", repository)

    assert diff.sha == "abc123"
    assert diff.patch == ""


@pytest.mark.asyncio
async def test_grab_commit_patch_not_found(client, mock_http, repository):
    """Test that a missing commit diff raises NotFoundError."""
    mock_http.get.return_value = diff_response("", 404)

    with pytest.raises(NotFoundError):
        await client.grab_commit_patch("abc123", repository)


@pytest.mark.asyncio
async def test_grab_diff(client, mock_http, repository):
    """Test compare diff retrieval."""
    diff = await client.grab_diff(repository, "abc123", "def456")

    assert diff == PATCH
    mock_http.get.assert_called_once_with(
        f"{BASE_URL}/repos/acme/widgets/compare/abc123...def456",
        headers=DIFF_ACCEPT,
        timeout=10,
    )


@pytest.mark.asyncio
async def test_grab_diff_empty(client, mock_http, repository):
    """Test that identical commits give an empty compare diff."""
    mock_http.get.return_value = diff_response("")

    assert await client.grab_diff(repository, "abc123", "abc123") == ""


@pytest.mark.asyncio
async def test_grab_diff_not_found(client, mock_http, repository):
    """Test that an unknown compare range raises NotFoundError."""
    mock_http.get.return_value = diff_response("", 404)

    with pytest.raises(NotFoundError):
        await client.grab_diff(repository, "abc123", "missing")


@pytest.mark.asyncio
async def test_make_branch(client, gh_repo, repository):
    """Test branch creation from another branch head."""
    name = await client.make_branch(
        repository, Branch(name="main", ref="abc123"), "feature-x"
    )

    assert name == "feature-x"
    gh_repo.create_git_ref.assert_called_once_with(
        ref="refs/heads/feature-x", sha="abc123"
    )


@pytest.mark.asyncio
async def test_make_branch_conflict(client, gh_repo, repository):
    """Test that an existing branch raises ConflictError."""
    gh_repo.create_git_ref.side_effect = GithubException(
        422, {"message": "Reference already exists"}, {}
    )

    with pytest.raises(ConflictError):
        await client.make_branch(repository, Branch(name="main", ref="abc123"), "main")


@pytest.mark.asyncio
async def test_make_pull_request(client, gh_repo, repository):
    """Test pull request creation."""
    gh_repo.create_pull.return_value = Mock(
        raw_data={
            "id": 1001,
            "number": 5,
            "html_url": "https://github.com/acme/widgets/pull/5",
        }
    )

    pull = await client.make_pull_request(repository, "feature-x", "main", "Add widgets")

    assert pull.number == 5
    assert pull.id == 1001
    assert pull.url == "https://github.com/acme/widgets/pull/5"
    assert pull.raw["number"] == 5
    gh_repo.create_pull.assert_called_once_with(
        base="main", head="feature-x", title="Add widgets"
    )


@pytest.mark.asyncio
async def test_make_pull_request_identical_branches(client, gh_repo, repository):
    """Test that a pull request into the same branch is rejected locally."""
    with pytest.raises(ConflictError):
        await client.make_pull_request(repository, "main", "main", "Nothing")

    gh_repo.create_pull.assert_not_called()


@pytest.mark.asyncio
async def test_make_pull_request_unmergeable(client, gh_repo, repository):
    """Test that GitHub's validation failure maps to ConflictError."""
    gh_repo.create_pull.side_effect = GithubException(
        422, {"message": "No commits between main and feature-x"}, {}
    )

    with pytest.raises(ConflictError):
        await client.make_pull_request(repository, "feature-x", "main", "Empty")
