"""
Git Provider Data Models.

Defines the normalized records every provider client produces, whatever the
shape of the provider's own API. Uses Pydantic for validation and serialization;
``model_dump(by_alias=True)`` yields the camelCase names used on the wire by
downstream consumers (``fullName``, ``avatarUrl``, ``repositoryId``...).
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Location(str, Enum):
    """
    Hosting provider a record originated from.

    Attributes:
        GITHUB: github.com or GitHub Enterprise
        GITLAB: GitLab
        BITBUCKET: Bitbucket
    """

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"


class ProviderRecord(BaseModel):
    """Base for normalized records, serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Repository(ProviderRecord):
    """Repository visible to the authenticated principal.

    ``owner`` + ``name`` address the repository within one provider. Callers may
    build a bare reference with just those two fields (plus ``internal_id`` for
    webhook operations).
    """

    id: Optional[Union[int, str]] = None
    name: str
    owner: str
    full_name: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    owner_url: Optional[str] = None
    created_at: Optional[str] = None
    pushed_at: Optional[str] = None
    updated_at: Optional[str] = None
    location: Optional[Location] = None
    internal_id: Optional[str] = None


class Branch(ProviderRecord):
    """Branch and the commit it points to."""

    name: str
    ref: str


class CommitAuthor(ProviderRecord):
    """Committer as resolved by the provider, any field may be missing."""

    id: Optional[Union[int, str]] = None
    name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    url: Optional[str] = None


class CommitFile(ProviderRecord):
    """File touched by a commit, without its patch."""

    name: Optional[str] = None
    status: Optional[str] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None
    contents_url: Optional[str] = None


class Commit(ProviderRecord):
    """Issue-linked commit with its unified diff.

    ``files`` is empty when only the listing entry was available.
    """

    sha: str
    comment: str
    url: Optional[str] = None
    author: CommitAuthor = Field(default_factory=CommitAuthor)
    stats: Optional[Dict[str, Any]] = None  # provider-reported, passed through
    patch: str = ""
    files: List[CommitFile] = Field(default_factory=list)
    timestamp: Optional[str] = None


class Diff(ProviderRecord):
    """Raw unified diff of a single commit."""

    sha: str
    patch: str = ""


class PullRequest(ProviderRecord):
    """Pull request as requested, completed with the provider's answer."""

    source_branch: str
    target_branch: str
    title: str
    id: Optional[Union[int, str]] = None
    number: Optional[int] = None
    url: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class WebhookRegistration(ProviderRecord):
    """Provider webhook bound to an internal repository.

    The signing secret is write-only and never part of this record.
    """

    id: Union[int, str]
    name: Optional[str] = None
    events: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    repository_id: str
