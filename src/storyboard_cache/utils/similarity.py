"""Lexical similarity between storyboard prompts.

A token-overlap stand-in for embedding similarity, tuned with a few
storyboard phrasings that are known to mean the same frame.
"""

from .prompts import normalize_prompt

# Applied once, for the first group with a phrase present in both prompts.
EQUIVALENT_PHRASES = (
    (("pizza on ice", "pizza placed on ice", "frozen pizza"), 0.25),
    (("man walking", "person walking", "male walking"), 0.20),
    (("on table", "on surface", "atop table"), 0.15),
)

VISUAL_TERMS = frozenset({"on", "under", "above", "beside", "in", "at", "near", "with"})
ACTION_TERMS = frozenset({"walking", "running", "sitting", "standing", "moving", "eating", "drinking"})


def prompt_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the prompts' word sets, plus a phrase boost.

    Args:
        first: A prompt
        second: Another prompt

    Returns:
        Similarity in [0, 1], rounded to 3 decimals; 1.0 for equal keys
    """
    a = normalize_prompt(first)
    b = normalize_prompt(second)
    if a == b:
        return 1.0

    tokens_a = set(a.split())
    tokens_b = set(b.split())
    score = len(tokens_a & tokens_b) / len(tokens_a | tokens_b)

    for phrases, boost in EQUIVALENT_PHRASES:
        if any(phrase in a and phrase in b for phrase in phrases):
            score = min(1.0, score + boost)
            break

    return round(score, 3)


def shares_terms(first: str, second: str, terms: frozenset[str]) -> bool:
    """True when both prompts contain at least one word from ``terms``."""
    return bool(terms & set(normalize_prompt(first).split())) and bool(
        terms & set(normalize_prompt(second).split())
    )
