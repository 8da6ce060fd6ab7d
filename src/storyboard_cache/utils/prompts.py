"""Prompt text helpers."""

# Order matters: Edge and Opera UAs also mention Chrome and Safari,
# and Chrome UAs also mention Safari.
_BROWSER_MARKERS = (
    ("edg", "Edge"),
    ("opr/", "Opera"),
    ("opera", "Opera"),
    ("firefox", "Firefox"),
    ("chrome", "Chrome"),
    ("safari", "Safari"),
)


def normalize_prompt(prompt: str) -> str:
    """Derive the cache key for a prompt.

    Trim + lower-case. Idempotent, and used for both reads and writes.

    Args:
        prompt: Raw prompt text

    Returns:
        The normalized key
    """
    return prompt.strip().lower()


def anonymize_user_agent(user_agent: str | None) -> str | None:
    """Reduce a User-Agent header to a coarse browser family label.

    Args:
        user_agent: Raw User-Agent header, if any

    Returns:
        "Chrome", "Firefox", "Safari", "Edge", "Opera", "Unknown", or None
    """
    if not user_agent:
        return None

    lowered = user_agent.lower()
    for marker, label in _BROWSER_MARKERS:
        if marker in lowered:
            return label
    return "Unknown"


def preview(text: str, length: int = 30) -> str:
    """Shorten text for log lines."""
    return text if len(text) <= length else f"{text[:length]}..."
