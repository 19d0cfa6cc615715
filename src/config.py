"""
Application Configuration Module.

Manages application settings and environment variables using Pydantic for validation.
Provides centralized configuration management with type safety and validation.

Features:
- Environment variable loading and validation
- Secure credential management (provider token, webhook secret key)
- Provider client tuning (timeouts, page size, per-commit fetch concurrency)
- Commit filter patterns and sync targets
"""

from typing import List

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from logger import LogManager


class Settings(BaseSettings):
    """
    Application configuration settings with validation.

    Attributes:
        app_name (str): Name of the application
        dev (bool): Debug mode flag
        log_dir (str): Directory for log files
        log_level (int): Logging level (default: debug)
        git_provider (str): Location tag of the provider to talk to
        github_token (SecretStr): GitHub API authentication token
        github_base_url (str): GitHub REST API root
        request_timeout (int): Per-request timeout in seconds
        per_page (int): Page size for paginated listings
        commit_fetch_concurrency (int): Commits fetched in parallel (detail + patch)
        issue_patterns (List[str]): Regular expressions of the issue-linkage predicate
        hook_secret_key (SecretStr): Key used to derive per-repository webhook secrets
        webhook_callback_url (str): Callback URL template, ``{repository}`` is the
            internal repository id
        sync_repositories (str): Comma-separated ``owner/name`` list to sync
        sync_branches (str): Comma-separated branch names to sync
        rate_limit_max_attempts (int): Attempts per call when rate limited
        rate_limit_max_wait (float): Upper bound in seconds for a rate-limit wait
    """

    # Application settings
    app_name: str = Field(default="Gitgrab", description="Application name")
    dev: bool = Field(default=False, description="Debug mode")
    log_dir: str = Field(default="logs", description="Logging directory")
    log_level: int = Field(default=10, description="Logging level, default debug")

    # Provider configuration
    git_provider: str = Field(default="github", description="Provider location tag")
    github_token: SecretStr = Field(default=SecretStr(""), description="GitHub token")
    github_base_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    request_timeout: int = Field(default=30, description="Request timeout in seconds")
    per_page: int = Field(default=100, description="Page size for listings")
    commit_fetch_concurrency: int = Field(
        default=4, description="Parallel per-commit detail and patch fetches"
    )

    # Commit filter
    issue_patterns: List[str] = Field(
        default=[r"(?<!&)#\d+\b", r"(?i)\bGH-\d+\b"],
        description="Issue-linkage regular expressions (JSON list in env)",
    )

    # Webhooks
    hook_secret_key: SecretStr = Field(
        default=SecretStr(""), description="Key for webhook secret derivation"
    )
    webhook_callback_url: str = Field(
        default="http://localhost:8000/project/webhook/{repository}",
        description="Webhook callback URL template",
    )

    # Sync targets
    sync_repositories: str = Field(
        default="", description="Comma-separated owner/name repositories to sync"
    )
    sync_branches: str = Field(
        default="", description="Comma-separated branch names, empty for all"
    )

    # Caller-level rate limit policy
    rate_limit_max_attempts: int = Field(default=3, description="Attempts when rate limited")
    rate_limit_max_wait: float = Field(
        default=300.0, description="Maximum seconds to wait for a rate limit reset"
    )

    @property
    def repository_names(self) -> List[str]:
        """
        Get list of repository full names from configuration.

        Returns:
            List[str]: ``owner/name`` entries, blanks removed
        """
        return [name.strip() for name in self.sync_repositories.split(",") if name.strip()]

    @property
    def branch_names(self) -> List[str]:
        """
        Get list of branch names from configuration.

        Returns:
            List[str]: Branch names, empty meaning every branch
        """
        return [name.strip() for name in self.sync_branches.split(",") if name.strip()]

    @field_validator("commit_fetch_concurrency", "per_page", "rate_limit_max_attempts")
    def ensure_positive(cls, v: int) -> int:
        """
        Ensure counters are at least one.

        Args:
            v (int): Value to validate

        Returns:
            int: The value

        Raises:
            ValueError: If the value is lower than one
        """
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    # Configure env file loading
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields in .env file
    )


# Create global settings instance
settings = Settings()

# Initialize logging configuration
logger = LogManager(
    app_name=settings.app_name.lower(),
    log_dir=settings.log_dir,
    development=settings.dev,
    level=settings.log_level,
).logger
