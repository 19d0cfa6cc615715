"""
Main Application Entry Point.

Runs a commit sync against the configured Git provider:
- Provider client construction and authentication
- Repository selection (configured list, or everything the token can see)
- Issue-linked commit retrieval per branch
- Summary logging

Nothing is persisted; downstream consumers receive the normalized records.
"""

import asyncio

from config import settings, logger
from providers.base import GitClient
from providers.factory import create_git_client
from sync.repository_sync import RepositorySync


async def main() -> None:
    """
    Execute the sync workflow.

    Raises:
        AuthenticationError: If the configured token is rejected
        RateLimitedError: If the provider keeps throttling after all attempts
    """
    logger.info({"message": "Starting repository sync", "provider": settings.git_provider})

    logger.debug("initializing provider client...")
    client: GitClient = create_git_client(settings.git_provider)
    await client.authenticate()

    repository_names = settings.repository_names
    if not repository_names:
        logger.info("no repositories configured, syncing every visible repository...")
        repository_names = [
            repository.full_name async for repository in client.iter_repositories()
        ]

    sync = RepositorySync(
        client,
        repository_names,
        settings.branch_names,
        settings.rate_limit_max_attempts,
    )
    results = await sync.sync_repositories()

    logger.info(
        {
            "message": "Repository sync finished",
            "repositories": len(results),
            "commits": sum(len(commits) for commits in results.values()),
        }
    )


if __name__ == "__main__":
    logger.info("Starting application ...")
    asyncio.run(main())
