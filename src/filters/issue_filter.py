"""
Issue-Linkage Commit Filter.

Decides whether a commit is relevant to tracked work: only commits whose
message references an issue survive provider listings. The predicate is a pure
function of the message and is injected into every provider client.
"""

import re
from typing import Optional, Sequence

DEFAULT_ISSUE_PATTERNS = (
    r"(?<!&)#\d+\b",  # "#42", not the HTML entity "&#42;"
    r"(?i)\bGH-\d+\b",
)


class IssueLinkFilter:
    """
    Issue-linkage predicate over commit messages.

    Attributes:
        patterns (List[re.Pattern]): Compiled issue reference patterns.
    """

    def __init__(self, patterns: Optional[Sequence[str]] = None):
        """Initialize the filter.

        Args:
            patterns (Optional[Sequence[str]]): Regular expressions recognizing an
                issue reference. Defaults to ``#<number>`` and ``GH-<number>``.
        """
        self.patterns = [re.compile(p) for p in (patterns or DEFAULT_ISSUE_PATTERNS)]

    def __call__(self, message: Optional[str]) -> bool:
        """Return True when the message references at least one issue."""
        if not message:
            return False
        return any(pattern.search(message) for pattern in self.patterns)


_default_filter = IssueLinkFilter()


def is_commit_issue(message: Optional[str]) -> bool:
    """Default issue-linkage predicate."""
    return _default_filter(message)
