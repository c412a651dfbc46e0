"""String helpers with the kernel's comparison and conversion rules."""

from __future__ import annotations

from itertools import chain, islice, repeat
from typing import Iterator

_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _lower_code(code: int) -> int:
    return code + 32 if 65 <= code <= 90 else code


def _codes(text: str) -> Iterator[int]:
    """Character codes of ``text`` followed by an endless run of terminators."""
    return chain(map(ord, text), repeat(0))


def tolower(c: str) -> str:
    """Lower-case a single ASCII letter; other characters are unchanged."""
    return chr(_lower_code(ord(c)))


def strncmp(s1: str, s2: str, n: int) -> int:
    """Compare at most ``n`` characters; a NUL ends both strings."""
    for a, b in islice(zip(_codes(s1), _codes(s2)), max(n, 0)):
        if a != b:
            return a - b
        if a == 0:
            return 0
    return 0


def istrncmp(s1: str, s2: str, n: int) -> int:
    """Like :func:`strncmp` but ASCII letters compare case-insensitively."""
    for a, b in islice(zip(_codes(s1), _codes(s2)), max(n, 0)):
        if a != b and _lower_code(a) != _lower_code(b):
            return a - b
        if a == 0:
            return 0
    return 0


def strnlen_terminator(text: str, maximum: int, terminator: str) -> int:
    """Length of ``text`` up to a NUL, ``terminator`` or ``maximum`` characters."""
    count = 0
    for ch in islice(text, max(maximum, 0)):
        if ch == "\0" or ch == terminator:
            break
        count += 1
    return count


def itoa(value: int) -> str:
    """Decimal text of an integer."""
    return f"{int(value):d}"


def itoa_hex(value: int, base: int = 16) -> str:
    """Text of ``value`` in ``base`` with upper-case digits and a leading minus."""
    if not 2 <= base <= len(_DIGITS):
        raise ValueError(f"unsupported base {base}")
    sign = "-" if value < 0 else ""
    remaining = abs(int(value))
    digits = []
    while True:
        remaining, digit = divmod(remaining, base)
        digits.append(_DIGITS[digit])
        if not remaining:
            break
    return sign + "".join(reversed(digits))


def atoi(text: str) -> int:
    """Accumulate decimal digits up to a NUL, without validating characters."""
    result = 0
    for ch in text:
        if ch == "\0":
            break
        result = result * 10 + ord(ch) - ord("0")
    return result


def tokens(text: str, delimiters: str) -> Iterator[str]:
    """Yield the non-empty runs of ``text`` between delimiter characters."""
    word: list[str] = []
    for ch in text:
        if ch == "\0":
            break
        if ch in delimiters:
            if word:
                yield "".join(word)
                word = []
        else:
            word.append(ch)
    if word:
        yield "".join(word)