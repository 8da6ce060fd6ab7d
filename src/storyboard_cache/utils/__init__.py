"""Utility modules for the storyboard cache."""

from .parsing import parse_index_groups, parse_json_array, parse_string_array
from .prompts import anonymize_user_agent, normalize_prompt, preview
from .similarity import ACTION_TERMS, VISUAL_TERMS, prompt_similarity, shares_terms

__all__ = [
    "ACTION_TERMS",
    "VISUAL_TERMS",
    "anonymize_user_agent",
    "normalize_prompt",
    "parse_index_groups",
    "parse_json_array",
    "parse_string_array",
    "preview",
    "prompt_similarity",
    "shares_terms",
]
