# ============================================
# board/utils/lexorank.py
# ============================================
"""
Fractional rank keys for ordering issues inside a board column.

Ranks are base-36 strings over ``0-9A-Z`` compared lexicographically. A key
never ends in ``'0'`` so there is always room to insert a key before it.

    initial()                 -> 'I'
    between('I', None)        -> 'R'
    between(None, 'I')        -> '9'
    between('I', 'J')         -> 'II'

When keys grow too long (or two neighbours collide) the column has to be
renormalized, see ``needs_renormalization`` / ``renormalize``.
"""
from operator import attrgetter
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

ALPHABET = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ'
BASE = len(ALPHABET)
DEFAULT_MAX_LENGTH = 12

_DIGITS = {ch: i for i, ch in enumerate(ALPHABET)}

T = TypeVar('T')


class RankCollision(ValueError):
    """No key fits between the given neighbours; the column must be renormalized."""

    def __init__(self, prev: str, next: str):
        self.prev = prev
        self.next = next
        super().__init__(f"Cannot rank between {prev!r} and {next!r}")


def is_valid_rank(rank) -> bool:
    if not isinstance(rank, str) or not rank:
        return False
    if rank[-1] == '0':
        return False
    return all(ch in _DIGITS for ch in rank)


def _check(rank: Optional[str]) -> None:
    if rank is not None and not is_valid_rank(rank):
        raise ValueError(f"Invalid rank: {rank!r}")


def _midpoint(lo: str, hi: Optional[str]) -> str:
    # lo < hi, neither ends in '0'; hi=None means "end of the key space"
    if hi is not None:
        n = 0
        while (lo[n] if n < len(lo) else '0') == hi[n]:
            n += 1
        if n > 0:
            return hi[:n] + _midpoint(lo[n:], hi[n:])

    digit_lo = _DIGITS[lo[0]] if lo else 0
    digit_hi = _DIGITS[hi[0]] if hi is not None else BASE
    if digit_hi - digit_lo > 1:
        return ALPHABET[(digit_lo + digit_hi) // 2]
    if hi is not None and len(hi) > 1:
        return hi[0]
    return ALPHABET[digit_lo] + _midpoint(lo[1:], None)


def initial() -> str:
    return _midpoint('', None)


def between(prev: Optional[str] = None, next: Optional[str] = None) -> str:
    """Return a key sorting strictly between ``prev`` and ``next``.

    ``prev=None`` places before ``next``, ``next=None`` places after ``prev``.
    Raises ``RankCollision`` when ``prev >= next``.
    """
    _check(prev)
    _check(next)
    if prev is None and next is None:
        return initial()
    if prev is not None and next is not None and prev >= next:
        raise RankCollision(prev, next)
    return _midpoint(prev or '', next)


def needs_renormalization(ranks: Iterable[str], max_length: int = DEFAULT_MAX_LENGTH) -> bool:
    ordered = sorted(ranks)
    if not ordered:
        return False
    if any(len(r) > max_length for r in ordered):
        return True
    for lo, hi in zip(ordered, ordered[1:]):
        if lo >= hi:
            return True
        if len(_midpoint(lo, hi)) > max_length:
            return True
    # room at both ends of the column
    if len(_midpoint('', ordered[0])) > max_length:
        return True
    return len(_midpoint(ordered[-1], None)) > max_length


def _to_base36(value: int, width: int) -> str:
    digits = []
    for _ in range(width):
        value, d = divmod(value, BASE)
        digits.append(ALPHABET[d])
    return ''.join(reversed(digits))


def renormalize(count: int) -> List[str]:
    """``count`` evenly spaced, strictly increasing keys.

    Neighbours are at least one full digit apart so every gap still accepts
    a key of the same width.
    """
    if count <= 0:
        return []
    width = 1
    while BASE ** width < (count + 1) * BASE:
        width += 1
    step = BASE ** width // (count + 1)
    return [_to_base36(step * (i + 1), width).rstrip('0') for i in range(count)]


def sort_by_rank(items: Sequence[T], rank_of: Callable[[T], str] = attrgetter('rank')) -> List[T]:
    return sorted(items, key=rank_of)
