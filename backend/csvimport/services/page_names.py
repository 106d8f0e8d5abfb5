"""
Page name rules.

Page names are URL-safe slugs, unique among the children of one parent.
"""

import re
import unicodedata
from typing import Iterable

MAX_NAME_LENGTH = 128


def sanitize_page_name(value: str) -> str:
    """
    Turn arbitrary text into a valid page name.

    - Normalize unicode and transliterate to ASCII
    - Lowercase
    - Replace anything but a-z, 0-9, dot, underscore and hyphen with hyphens
    - Collapse repeated hyphens
    - Strip leading/trailing punctuation
    - Truncate to MAX_NAME_LENGTH

    Examples:
        "Crème Brûlée" -> "creme-brulee"
        "  Hello, World!  " -> "hello-world"
    """
    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")

    value = value.lower()
    value = re.sub(r"[^a-z0-9._-]+", "-", value)
    value = re.sub(r"-+", "-", value)
    value = value.strip("-._")

    if len(value) > MAX_NAME_LENGTH:
        value = value[:MAX_NAME_LENGTH].rstrip("-._")

    return value


def with_suffix(name: str, number: int) -> str:
    """Append ``-number`` to a name, keeping within MAX_NAME_LENGTH."""
    suffix = f"-{number}"
    return name[: MAX_NAME_LENGTH - len(suffix)] + suffix


def first_free_name(name: str, taken: Iterable[str]) -> str:
    """
    Return ``name-N`` for the smallest N >= 1 not present in ``taken``.

    ``name`` itself is assumed to be taken already.
    """
    taken = set(taken)
    number = 1
    while with_suffix(name, number) in taken:
        number += 1
    return with_suffix(name, number)
