import pytest

from tensorchain import Index, IndexSet


def test_identity_not_dimension_decides_equality():
    a = Index(3, "a")
    b = Index(3, "a")
    assert a != b
    assert a == Index(5, "other", id=a.id)


def test_prime_levels_are_distinct_legs():
    a = Index(2, "a")
    assert a.prime() != a
    assert a.prime().noprime() == a
    assert a.prime(2) == a.prime().prime()
    assert hash(a.prime()) == hash(Index(2, "a", id=a.id, plev=1))


def test_index_value_range():
    a = Index(2, "a")
    assert a(1).val == 1
    with pytest.raises(ValueError):
        a(2)


def test_nonpositive_dimension_rejected():
    with pytest.raises(ValueError):
        Index(0)


def test_indexset_queries():
    a, b, c = Index(2, "a"), Index(3, "b"), Index(4, "c")
    s = IndexSet([a, b, c])
    assert s.rank == 3 and s.r() == 3
    assert s.dims == (2, 3, 4)
    assert s.size == 24
    assert s.find(b) == 1
    assert s.find(b.prime()) == -1
    assert c in s
    assert s[1:] == IndexSet([b, c])
    assert s == (a, b, c)
    assert s.prime() == [a.prime(), b.prime(), c.prime()]


def test_indexset_common_and_uncommon():
    a, b, c = Index(2, "a"), Index(3, "b"), Index(4, "c")
    s = IndexSet([a, b])
    t = IndexSet([c, b])
    assert s.common(t) == [b]
    assert s.uncommon(t) == [a]
    assert s.uncommon([a]) == [b]


def test_empty_indexset_is_scalar_shape():
    s = IndexSet()
    assert s.rank == 0
    assert s.size == 1
