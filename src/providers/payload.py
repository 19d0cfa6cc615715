"""Optional-path access over provider payloads."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

NATIVE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def dig(source: Any, path: str, default: Any = None) -> Any:
    """Look up a dotted path such as ``"commit.committer.name"``.

    Walks mappings by key and SDK objects by attribute. Missing segments and
    ``None`` values yield ``default`` instead of raising.
    """
    current = source
    for key in path.split("."):
        if current is None:
            return default
        if isinstance(current, Mapping):
            current = current.get(key)
        else:
            current = getattr(current, key, None)
    return default if current is None else current


def timestamp(value: Any) -> Optional[str]:
    """Render a provider timestamp in its native ``YYYY-MM-DDTHH:MM:SSZ`` form.

    Strings are passed through untouched; datetimes parsed by an SDK are
    converted back to UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).strftime(NATIVE_TIMESTAMP_FORMAT)
    return str(value)
