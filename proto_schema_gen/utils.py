"""
Utility functions for the protobuf schema generator.
"""

import re

# Regex pattern to split text into words, handling camelCase boundaries and acronyms
_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")

_SANITIZE_TOKENS = (
    ("[]", "Slice"),
    ("*", "Star"),
    (".", "_"),
    ("[", "_"),
    ("]", ""),
    (",", "_"),
    (" ", ""),
)


def _normalize_separators(text: str) -> str:
    """Normalize separators (underscores, hyphens) to spaces."""
    return text.replace("_", " ").replace("-", " ")


def _split_into_words(text: str) -> list[str]:
    """Split text into words, keeping acronyms such as "ID" or "HTTP" together."""
    return _WORD_PATTERN.findall(_normalize_separators(text))


def snake_to_pascal_case(text: str) -> str:
    """Convert snake_case, camelCase, or space-separated text to PascalCase.

    Examples:
        "first_name" -> "FirstName"
        "created_at" -> "CreatedAt"
        "userID" -> "UserId"

    Args:
        text: The text to convert

    Returns:
        PascalCase string
    """
    if not text:
        return ""
    return "".join(word.capitalize() for word in _split_into_words(text) if word)


def to_snake_case(text: str) -> str:
    """Convert an identifier to lower_snake_case.

    Examples:
        "CreatedAt" -> "created_at"
        "UserID" -> "user_id"
        "HTTPServer" -> "http_server"
    """
    return "_".join(word.lower() for word in _split_into_words(text))


def to_screaming_snake_case(text: str) -> str:
    """Convert an identifier to SCREAMING_SNAKE_CASE ("StatusActive" -> "STATUS_ACTIVE")."""
    return "_".join(word.upper() for word in _split_into_words(text))


def sanitize_type_name(type_text: str) -> str:
    """Turn a type expression into a token usable inside a function name.

    Pointer, sequence and package-separator markers map to fixed tokens so
    that every composite shape gets a stable helper name:

        "*User" -> "StarUser"
        "[]*models.User" -> "SliceStarmodels_User"
        "Page[User]" -> "Page_User"
    """
    result = type_text
    for marker, token in _SANITIZE_TOKENS:
        result = result.replace(marker, token)
    return result
