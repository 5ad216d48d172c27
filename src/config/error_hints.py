"""Remediation hints for recommender.yaml validation errors.

Hints are looked up from the most specific match to the least: the
field name, then the config section, then the Pydantic error type.
"""

from typing import Final


DEFAULT_HINT: Final = "See config/recommender.yaml for every key with its default value."

# Pydantic error types the schema can produce, plus loader-level failures
ERROR_HINTS: Final[dict[str, str]] = {
    "missing": "This field is required. Please add it to your configuration.",
    "extra_forbidden": "Unknown key. Check the spelling against config/recommender.yaml.",
    "int_type": "This field must be an integer (whole number).",
    "int_parsing": "This field must be an integer (whole number).",
    "float_type": "This field must be a number.",
    "float_parsing": "This field must be a number.",
    "bool_type": "This field must be true or false.",
    "bool_parsing": "This field must be true or false.",
    "model_type": "This section must be a mapping of keys to values.",
    "greater_than_equal": "The value is too small. Check the minimum allowed.",
    "less_than_equal": "The value is too large. Check the maximum allowed.",
    "string_pattern_mismatch": "The value does not have the expected format.",
    "value_error": "Check the value and any related fields it must agree with.",
    "file_not_found": "The file does not exist. Check the file path.",
    "yaml_parse_error": "Invalid YAML syntax. Check for proper indentation and formatting.",
}

# Cross-field rules are reported against their section
SECTION_HINTS: Final[dict[str, str]] = {
    "strategy": "personalized_min_actions must be greater than adaptive_min_actions.",
    "quality": "ctr, engagement, content and consistency weights must sum to at most 1.0.",
    "ranking": "quality_weight + behavior_weight must be at most 1.0.",
    "sources": "Per-source limits must be between 0 and 500.",
    "cache": "TTLs are in seconds; 0 disables caching for that entry.",
}

FIELD_HINTS: Final[dict[str, str]] = {
    "version": "Use a 'major.minor' string (e.g., '1.0').",
    "personalized_min_actions": "Must be a positive integer above adaptive_min_actions.",
    "adaptive_min_actions": "Must be a positive integer below personalized_min_actions.",
    "ctr_weight": "Must be between 0.0 and 1.0; quality weights sum to at most 1.0.",
    "engagement_weight": "Must be between 0.0 and 1.0; quality weights sum to at most 1.0.",
    "content_weight": "Must be between 0.0 and 1.0; quality weights sum to at most 1.0.",
    "consistency_weight": "Must be between 0.0 and 1.0; quality weights sum to at most 1.0.",
    "quality_weight": "Must be between 0.0 and 1.0; quality + behavior weight is at most 1.0.",
    "behavior_weight": "Must be between 0.0 and 1.0; quality + behavior weight is at most 1.0.",
    "max_progress_percent": "Must be a percentage between 0 and 100.",
    "page_size": "Must be between 1 and 100.",
    "max_workers": "Must be between 1 and 64.",
}


def get_error_hint(error_type: str, field_name: str | None = None) -> str:
    """Get a remediation hint for a validation error.

    Args:
        error_type: The Pydantic error type (e.g., 'missing', 'value_error').
        field_name: Dotted error location (e.g., 'quality.ctr_weight').

    Returns:
        The most specific hint available.
    """
    if field_name:
        parts = field_name.split(".")
        if parts[-1] in FIELD_HINTS:
            return FIELD_HINTS[parts[-1]]
        # Model validators report at the section itself
        if len(parts) == 1 and error_type == "value_error" and parts[0] in SECTION_HINTS:
            return SECTION_HINTS[parts[0]]

    return ERROR_HINTS.get(error_type, DEFAULT_HINT)


def format_validation_error(
    location: str,
    message: str,
    error_type: str,
    *,
    include_hint: bool = True,
) -> str:
    """Render one validation error for the CLI.

    Args:
        location: Dotted error location.
        message: Pydantic's message.
        error_type: Pydantic error type.
        include_hint: Append the hint on its own indented line.

    Returns:
        ``"<location>: <message>"``, optionally followed by the hint.
    """
    line = f"{location}: {message}"
    if not include_hint:
        return line
    return f"{line}\n    Hint: {get_error_hint(error_type, location)}"
