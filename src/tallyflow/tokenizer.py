import re
from collections.abc import Iterator

_WORD_PATTERN = re.compile(r"[a-z]+")


def tokenize(line: str) -> Iterator[str]:
    """
    Lazily yield the lowercase alphabetic words of a line.

    Anything outside ``a-z`` after lowercasing (digits, punctuation,
    whitespace, non-ASCII letters) acts as a delimiter.
    """
    for match in _WORD_PATTERN.finditer(line.lower()):
        yield match.group()
