"""Provider client construction by location tag."""

from typing import Dict, Optional, Type, Union

from config import settings
from filters.issue_filter import IssueLinkFilter
from providers.base import GitClient
from providers.github_provider import GitHubClient
from providers.models import Location
from webhooks.callbacks import CallbackUrlResolver
from webhooks.security import HookSecretDeriver

CLIENTS: Dict[Location, Type[GitClient]] = {
    Location.GITHUB: GitHubClient,
}


def create_git_client(
    location: Union[Location, str], access_token: Optional[str] = None
) -> GitClient:
    """
    Build the provider client for a location, wired with configured collaborators.

    Args:
        location (Union[Location, str]): Provider location tag.
        access_token (Optional[str]): Token supplied by the account context.

    Returns:
        GitClient: Unauthenticated client; call ``authenticate()`` before use.

    Raises:
        ValueError: If no client is registered for the location.
    """
    try:
        client_class = CLIENTS[Location(location)]
    except (KeyError, ValueError):
        raise ValueError(f"Unsupported git provider location: {location}") from None

    return client_class(
        access_token=access_token,
        hook_secrets=HookSecretDeriver(settings.hook_secret_key.get_secret_value()),
        callback_urls=CallbackUrlResolver(settings.webhook_callback_url),
        commit_filter=IssueLinkFilter(settings.issue_patterns),
        concurrency=settings.commit_fetch_concurrency,
    )
