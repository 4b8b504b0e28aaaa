"""String helpers used to derive stack, app and alarm names."""

from __future__ import annotations

import re

_SEPARATOR_PATTERN = re.compile(r"[-_][a-z]", re.IGNORECASE)


def to_camel(text: str) -> str:
    """Drop ``-``/``_`` separators, upper-casing the letter that follows.

    >>> to_camel("my-cool_app")
    'myCoolApp'

    A separator followed by anything other than a letter is kept as-is.
    """
    return _SEPARATOR_PATTERN.sub(lambda match: match.group(0)[1].upper(), text)


def capitalize_first_letter(text: str) -> str:
    """Upper-case the first character and leave the rest untouched."""
    return text[:1].upper() + text[1:]


def slice_word(text: str, count: int) -> str:
    """Return the first ``count`` characters, with ``...`` when truncated."""
    return text[:count] + ("..." if len(text) > count else "")
