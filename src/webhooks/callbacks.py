"""Public callback URL resolution for webhook registration."""

from urllib.parse import quote


class CallbackUrlResolver:
    """Resolves the callback URL a provider should POST webhook events to."""

    def __init__(self, template: str):
        """Initialize the resolver.

        Args:
            template (str): URL template with a ``{repository}`` placeholder that
                receives the internal repository id.

        Raises:
            ValueError: If the placeholder is missing.
        """
        if "{repository}" not in template:
            raise ValueError("Callback URL template must contain '{repository}'")
        self.template = template

    def __call__(self, repository_id: str) -> str:
        return self.template.format(repository=quote(repository_id, safe=""))
