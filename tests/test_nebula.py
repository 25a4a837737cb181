import pytest

from cryptex.utils.errors import (CryptexError, ErrorKind)
from cryptex.utils.nebula import (
    RESEED_THRESHOLD, EntropyCollector, Nebula, monobit_test, secured_seed, seeded_shuffle, shuffle
)

def constant_collector():
    return EntropyCollector([("answer", lambda: 42), ("blob", lambda: b"nebula")])

def failing_source():
    raise OSError("denied")

# -----------------------------
# Seeded determinism
# -----------------------------
def test_same_seed_same_stream():
    assert Nebula(seed=42).generate_random_bytes(300) == Nebula(seed=42).generate_random_bytes(300)

def test_different_seed_different_stream():
    assert Nebula(seed=42).generate_random_bytes(64) != Nebula(seed=43).generate_random_bytes(64)

def test_seed_types_normalise():
    assert Nebula(seed="abc").generate_random_bytes(32) == Nebula(seed=b"abc").generate_random_bytes(32)

def test_stream_is_independent_of_chunking():
    a = Nebula(seed=7)
    b = Nebula(seed=7)
    chunked = a.generate_random_bytes(100) + a.generate_random_bytes(100)
    assert chunked == b.generate_random_bytes(200)

def test_random_number_is_64_bit():
    n = Nebula(seed=5)
    for _ in range(50):
        assert 0 <= n.generate_random_number() < 1 << 64

def test_deterministic_across_reseed():
    a = Nebula(seed=9)
    b = Nebula(seed=9)
    assert a.generate_random_bytes(3 * RESEED_THRESHOLD) == b.generate_random_bytes(3 * RESEED_THRESHOLD)

# -----------------------------
# Bounded numbers
# -----------------------------
def test_bounded_number_within_range():
    n = Nebula(seed=1)
    draws = [n.generate_bounded_number(5, 10) for _ in range(300)]
    assert all(5 <= d <= 10 for d in draws)
    assert set(draws) == set(range(5, 11))

def test_bounded_number_single_value():
    assert Nebula(seed=1).generate_bounded_number(3, 3) == 3

def test_bounded_number_large_span():
    n = Nebula(seed=2)
    for _ in range(20):
        assert 0 <= n.generate_bounded_number(0, 10**30) <= 10**30

def test_bounded_number_rejects_inverted_range():
    with pytest.raises(CryptexError) as exc:
        Nebula(seed=1).generate_bounded_number(10, 5)
    assert exc.value.kind is ErrorKind.RANGE
    assert exc.value.code == 9

# -----------------------------
# Shuffling
# -----------------------------
def test_shuffle_is_permutation():
    items = list(range(100))
    result = Nebula(seed=11).shuffle(items)
    assert sorted(result) == items
    assert items == list(range(100))

def test_shuffle_empty_and_single():
    n = Nebula(seed=11)
    assert n.shuffle([]) == []
    assert n.shuffle(["x"]) == ["x"]

def test_seeded_shuffle_is_reproducible():
    items = list("abcdefghijklmnopqrstuvwxyz")
    first = seeded_shuffle(items, 42)
    assert first == seeded_shuffle(items, 42)
    assert sorted(first) == items
    assert first != items

def test_seeded_shuffle_depends_on_seed():
    items = list(range(64))
    assert seeded_shuffle(items, 1) != seeded_shuffle(items, 2)

def test_method_seeded_shuffle_ignores_instance_state():
    items = list(range(50))
    n = Nebula(seed=123)
    n.generate_random_bytes(40)
    assert n.seeded_shuffle(items, 7) == seeded_shuffle(items, 7)

def test_module_shuffle_uses_system_entropy():
    items = list(range(20))
    assert sorted(shuffle(items)) == items

# -----------------------------
# Entropy pool and collector
# -----------------------------
def test_seeded_instance_has_empty_pool():
    assert len(Nebula(seed=1).pool) == 0

def test_add_entropy_grows_pool_and_changes_state():
    n = Nebula(seed=1)
    before = n.state
    n.add_entropy(b"sample")
    assert len(n.pool) == 64
    assert n.state != before

def test_entropy_driven_instance_fills_pool():
    n = Nebula(collector=constant_collector())
    assert len(n.pool) == 2 * 64
    assert len(n.generate_random_bytes(16)) == 16

def test_reseed_gathers_from_collector():
    n = Nebula(seed=1, collector=constant_collector())
    assert len(n.pool) == 0
    n.generate_random_bytes(RESEED_THRESHOLD)
    assert len(n.pool) == 2 * 64

def test_reseed_waits_for_threshold():
    n = Nebula(seed=1)
    n.generate_random_bytes(RESEED_THRESHOLD - 1)
    assert n.reseed(3) is False
    before = n.state
    n.generate_random_bytes(1)
    assert n.state != before

def test_default_collector_produces_samples():
    samples = EntropyCollector().collect()
    assert samples
    assert all(isinstance(s, bytes) for s in samples)

def test_collector_skips_failing_sources():
    collector = EntropyCollector([("bad", failing_source), ("good", lambda: 1)])
    assert collector.collect() == [(1).to_bytes(16, 'big')]

def test_collector_without_samples_fails():
    collector = EntropyCollector([("bad", failing_source)])
    with pytest.raises(CryptexError) as exc:
        collector.collect()
    assert exc.value.kind is ErrorKind.ENTROPY
    with pytest.raises(CryptexError):
        Nebula(collector=collector)

def test_secured_seed_is_non_negative_int():
    seed = secured_seed(constant_collector())
    assert isinstance(seed, int)
    assert 0 <= seed <= (16 * 255) ** 2

# -----------------------------
# Health checks
# -----------------------------
def test_monobit_accepts_nebula_output():
    assert monobit_test(Nebula(seed=3).generate_random_bytes(4096))

def test_monobit_rejects_constant_data():
    assert not monobit_test(bytes(1000))
    assert not monobit_test(b"\xff" * 1000)

def test_monobit_rejects_empty():
    assert not monobit_test(b"")
