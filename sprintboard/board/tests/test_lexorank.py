import random

import pytest

from board.utils import lexorank
from board.utils.lexorank import RankCollision


def test_initial_and_open_ends():
    assert lexorank.initial() == 'I'
    assert lexorank.between() == 'I'
    assert lexorank.between('I', None) == 'R'
    assert lexorank.between(None, 'I') == '9'


def test_between_adjacent_digits_extends_key():
    assert lexorank.between('I', 'J') == 'II'


@pytest.mark.parametrize("prev,nxt", [("I", "R"), ("I", "II"), ("1", "2"), ("ZZ", None), (None, "01")])
def test_between_is_strictly_inside(prev, nxt):
    key = lexorank.between(prev, nxt)
    assert lexorank.is_valid_rank(key)
    if prev is not None:
        assert prev < key
    if nxt is not None:
        assert key < nxt


@pytest.mark.parametrize("prev,nxt", [("R", "I"), ("I", "I")])
def test_between_rejects_out_of_order_neighbours(prev, nxt):
    with pytest.raises(RankCollision) as exc:
        lexorank.between(prev, nxt)
    assert exc.value.prev == prev
    assert exc.value.next == nxt


@pytest.mark.parametrize("bad", ["", "a", "I0", "I-"])
def test_invalid_ranks_are_rejected(bad):
    assert not lexorank.is_valid_rank(bad)
    with pytest.raises(ValueError):
        lexorank.between(bad, None)


def test_random_insertions_keep_intended_order():
    rng = random.Random(7)
    column = []
    for n in range(300):
        pos = rng.randint(0, len(column))
        prev = column[pos - 1] if pos > 0 else None
        nxt = column[pos] if pos < len(column) else None
        column.insert(pos, lexorank.between(prev, nxt))

    assert len(set(column)) == len(column)
    assert sorted(column) == column


def test_repeated_append_and_prepend():
    keys = [lexorank.initial()]
    for _ in range(100):
        keys.append(lexorank.between(keys[-1], None))
    for _ in range(100):
        keys.insert(0, lexorank.between(None, keys[0]))
    assert sorted(keys) == keys
    assert len(set(keys)) == len(keys)


def test_repeated_insert_at_same_spot_grows_keys():
    low, high = 'I', 'J'
    inserted = []
    for _ in range(40):
        high = lexorank.between(low, high)
        inserted.append(high)
    assert inserted == sorted(inserted, reverse=True)
    assert all(low < k for k in inserted)
    assert len(inserted[-1]) > lexorank.DEFAULT_MAX_LENGTH // 2


def test_needs_renormalization():
    assert not lexorank.needs_renormalization([])
    assert not lexorank.needs_renormalization(['I', 'R'])
    assert lexorank.needs_renormalization(['I', 'I'])
    assert lexorank.needs_renormalization(['I' * 13])
    # midpoint of I / I1 is 'I0I', too long for width 2
    assert lexorank.needs_renormalization(['I', 'I1'], max_length=2)
    assert not lexorank.needs_renormalization(['I', 'R'], max_length=2)


@pytest.mark.parametrize("count", [1, 2, 10, 35, 36, 100, 1000])
def test_renormalize_is_ordered_and_roomy(count):
    keys = lexorank.renormalize(count)
    assert len(keys) == count
    assert keys == sorted(keys)
    assert len(set(keys)) == count
    assert all(lexorank.is_valid_rank(k) for k in keys)
    assert not lexorank.needs_renormalization(keys)
    assert lexorank.renormalize(count) == keys


def test_renormalize_small_columns():
    assert lexorank.renormalize(0) == []
    assert lexorank.renormalize(5) == ['6', 'C', 'I', 'O', 'U']


def test_sort_by_rank_uses_key_function():
    items = [{'r': 'R'}, {'r': '9'}, {'r': 'I'}]
    assert [i['r'] for i in lexorank.sort_by_rank(items, rank_of=lambda i: i['r'])] == ['9', 'I', 'R']
