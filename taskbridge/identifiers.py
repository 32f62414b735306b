"""Title conventions that tie a Beads issue to a Task Master task."""

import re

# Priority order matters: first match wins.
_TITLE_PATTERNS = (
    re.compile(r"^A-(\d+):"),  # A-85: Title
    re.compile(r"^\[A-(\d+)\]"),  # [A-85] Title
    re.compile(r"\(A-(\d+)\)"),  # Title (A-85)
    re.compile(r"^a:(\d+)", re.IGNORECASE),  # a:85 Title
)

_A_IDENTIFIER = re.compile(r"^(?:a[:\-])?(\d+)$", re.IGNORECASE)


def extract_a_id(title: str) -> int | None:
    """Return the Task Master id embedded in a Beads title, or None."""
    for pattern in _TITLE_PATTERNS:
        match = pattern.search(title)
        if match:
            return int(match.group(1))
    return None


def format_b_title(a_id: int, title: str) -> str:
    """Canonical title for a Beads issue created from a Task Master task."""
    return f"A-{a_id}: {title}"


def parse_a_id(text: str) -> int | None:
    """Parse 7, a-7, A:7 into 7."""
    match = _A_IDENTIFIER.match(text.strip())
    return int(match.group(1)) if match else None
