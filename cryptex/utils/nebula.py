"""
Nebula - entropy-pooled pseudo-random number generator.

Nebula keeps a 512-bit internal state that is ratcheted through SHA3-512
on every refill and expanded through SHAKE-256 into output blocks. It has
two modes:

- Seeded: Nebula(seed=...) with no collector is a pure function of the
  seed. seeded_shuffle relies on this so that a table can be rebuilt for
  decryption from its seed alone.
- Entropy-driven: Nebula() starts from secured_seed() and mixes in
  samples from an EntropyCollector, and pulls fresh samples on reseed.

An instance is not thread safe; give each encrypt/decrypt call its own.
"""
import hashlib
import logging
import math
import os
import time
import numpy as np
import psutil
from typing import Callable, List, Optional, Sequence, Tuple

from cryptex.utils.encryption import (KeyLike, as_bytes, shake)
from cryptex.utils.errors import (CryptexError, ErrorKind)
from cryptex.utils.kdf import (kdfwagen)

logger = logging.getLogger(__name__)

MAX_RESEED_INTERVAL = 60  # seconds between seed updates from the clock
RESEED_THRESHOLD = 512  # bytes drawn before the state is rekeyed
STATE_SIZE = 64
REFILL_SIZE = 256
MASK_128 = (1 << 128) - 1

# -----------------------------
# Entropy Collection
# -----------------------------
def _disk_io() -> int:
    counters = psutil.disk_io_counters()
    if counters is None:
        raise OSError("disk counters unavailable")
    return counters.read_bytes + counters.write_bytes + counters.read_count + counters.write_count

def _net_io() -> int:
    net = psutil.net_io_counters()
    return (net.bytes_sent + net.bytes_recv + net.packets_sent + net.packets_recv
            + net.errin + net.errout)

def _process_io() -> int:
    io = psutil.Process().io_counters()
    return io.read_bytes + io.write_bytes

def default_sources() -> List[Tuple[str, Callable[[], object]]]:
    """Clock, process and psutil system counters, in collection order."""
    return [
        ("time", time.time_ns),
        ("perf_counter", time.perf_counter_ns),
        ("pid", os.getpid),
        ("urandom", lambda: os.urandom(8)),
        ("total_memory", lambda: psutil.virtual_memory().total),
        ("used_memory", lambda: psutil.virtual_memory().used),
        ("total_swap", lambda: psutil.swap_memory().total),
        ("cpu_count", lambda: psutil.cpu_count() or 0),
        ("boot_time", lambda: int(psutil.boot_time() * 1_000_000)),
        ("network", _net_io),
        ("disk", _disk_io),
        ("process_io", _process_io),
    ]


class EntropyCollector:
    """
    Gathers raw entropy samples from already-available system signals.

    Never blocks: every source reads a counter or clock. Sources that are
    unsupported on the platform or denied by permissions are skipped.
    """

    def __init__(self, sources: Optional[Sequence[Tuple[str, Callable[[], object]]]] = None):
        self.sources = list(sources) if sources is not None else default_sources()

    def collect(self) -> List[bytes]:
        """
        Read every source once.

        Returns:
            One byte string per source that produced a value

        Raises:
            CryptexError(ENTROPY): If no source produced anything
        """
        samples = []
        for name, read in self.sources:
            try:
                value = read()
            except (psutil.Error, OSError, AttributeError, NotImplementedError) as e:
                logger.debug("entropy source %s unavailable: %s", name, e)
                continue
            if isinstance(value, (bytes, bytearray)):
                samples.append(bytes(value))
            else:
                samples.append((int(value) & MASK_128).to_bytes(16, 'big'))
        if not samples:
            raise CryptexError(ErrorKind.ENTROPY)
        return samples


class EntropyPool:
    """Append-only buffer of conditioned entropy samples."""

    def __init__(self):
        self._data = bytearray()

    def add(self, sample: bytes):
        self._data.extend(sample)

    def snapshot(self) -> bytes:
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)


def secured_seed(collector: Optional[EntropyCollector] = None) -> int:
    """
    Seed value derived from the system context and the current time.

    The collected context is stretched with kdfwagen (15 rounds) using the
    decimal timestamp as salt; the seed is the product of the byte sums
    of the two halves of the 32-byte result.
    """
    collector = collector or EntropyCollector()
    now = str(time.time_ns())
    context = b"".join(collector.collect())
    with kdfwagen(context, now, 15, 32) as key:
        raw = key.expose()
    return sum(raw[:16]) * sum(raw[16:])

# -----------------------------
# Nebula PRNG
# -----------------------------
class Nebula:
    """
    Reproducible-when-seeded, otherwise entropy-driven PRNG.

    Args:
        seed: Integer, string or bytes. Omit for an entropy-driven instance.
        collector: Entropy source for gather_entropy() and reseeding. An
            entropy-driven instance creates a default one.
    """

    def __init__(self, seed: Optional[KeyLike] = None, collector: Optional[EntropyCollector] = None):
        self._pool = EntropyPool()
        self._state = bytes(STATE_SIZE)
        self._seed = 0
        self._counter = 0
        self._buffer = b""
        self._offset = 0
        self._bytes_since_reseed = 0
        self._last_reseed_time = 0
        self._collector = collector
        if seed is None:
            if self._collector is None:
                self._collector = EntropyCollector()
            self.seed(secured_seed(self._collector))
            self.gather_entropy()
        else:
            self.seed(seed)

    @property
    def pool(self) -> EntropyPool:
        return self._pool

    @property
    def state(self) -> bytes:
        return self._state

    def _mix(self, tag: bytes, data: bytes):
        self._state = hashlib.sha3_512(self._state + tag + data).digest()
        # Output buffered under the old state must not survive a state change
        self._buffer = b""
        self._offset = 0

    def seed(self, value: KeyLike):
        """Mix an explicit seed into the state; later draws are a function of it."""
        raw = as_bytes(value)
        self._seed ^= int.from_bytes(hashlib.sha3_512(raw).digest()[:16], 'big')
        self._mix(b"seed", raw)

    def add_entropy(self, sample: bytes):
        """Condition a sample with SHA3-512, append it to the pool and mix it in."""
        digest = hashlib.sha3_512(bytes(sample)).digest()
        self._pool.add(digest)
        self._mix(b"entropy", digest)

    def gather_entropy(self):
        """Feed one round of collector samples through add_entropy."""
        if self._collector is None:
            self._collector = EntropyCollector()
        for sample in self._collector.collect():
            self.add_entropy(sample)

    def _combine_entropy(self) -> int:
        combined = self._seed
        for byte in self._state:
            combined = (combined * 33 + byte) & MASK_128
        return combined ^ (self._last_reseed_time & MASK_128)

    def _refill(self):
        entropy = self._combine_entropy().to_bytes(16, 'big')
        self._counter += 1
        block = shake(REFILL_SIZE, self._state, entropy, self._counter.to_bytes(8, 'big'))
        self._mix(b"ratchet", entropy)
        self._buffer = block
        self._offset = 0

    def reseed(self, new_seed: int) -> bool:
        """
        Rekey the state once RESEED_THRESHOLD bytes have been drawn.

        With a collector attached, fresh system samples are mixed in and
        new_seed is folded into the seed at most once per
        MAX_RESEED_INTERVAL. Without one the rekey is deterministic.

        Returns:
            True if a reseed happened
        """
        if self._bytes_since_reseed < RESEED_THRESHOLD:
            return False
        self._bytes_since_reseed = 0

        if self._collector is not None:
            self.gather_entropy()
            now = time.time_ns()
            if now - self._last_reseed_time > MAX_RESEED_INTERVAL * 1_000_000_000:
                self._last_reseed_time = now
                self._seed ^= new_seed & MASK_128
        else:
            self._seed ^= new_seed & MASK_128

        self._mix(b"reseed", self._combine_entropy().to_bytes(16, 'big'))
        logger.debug("Nebula reseeded (pool=%d bytes)", len(self._pool))
        return True

    def generate_random_bytes(self, count: int) -> bytes:
        out = bytearray()
        while len(out) < count:
            if self._offset >= len(self._buffer):
                self._refill()
            take = min(count - len(out), len(self._buffer) - self._offset)
            out += self._buffer[self._offset:self._offset + take]
            self._offset += take
        self._bytes_since_reseed += count
        if out:
            self.reseed(out[-1])
        return bytes(out)

    def generate_random_number(self) -> int:
        """Uniform 64-bit unsigned integer."""
        return int.from_bytes(self.generate_random_bytes(8), 'big')

    def generate_bounded_number(self, min: int, max: int) -> int:
        """
        Uniform integer N with min <= N <= max.

        Rejection sampling over a draw one byte wider than the span, so the
        result carries no modulo bias and fewer than 1 in 256 draws are
        rejected.

        Raises:
            CryptexError(RANGE): If min > max
        """
        if min > max:
            raise CryptexError(ErrorKind.RANGE, f"Lower bound {min} is greater than upper bound {max}")
        span = max - min + 1
        if span == 1:
            return min
        nbytes = ((span - 1).bit_length() + 7) // 8 + 1
        limit = ((1 << (8 * nbytes)) // span) * span
        while True:
            r = int.from_bytes(self.generate_random_bytes(nbytes), 'big')
            if r < limit:
                return min + r % span

    def shuffle(self, sequence: Sequence) -> list:
        """
        Fisher-Yates shuffle driven by this generator.

        Every position performs exactly one draw and one swap regardless of
        the element values.

        Returns:
            A new list holding a uniformly random permutation of sequence
        """
        items = list(sequence)
        for i in range(len(items) - 1, 0, -1):
            j = self.generate_bounded_number(0, i)
            items[i], items[j] = items[j], items[i]
        return items

    def seeded_shuffle(self, sequence: Sequence, seed: KeyLike) -> list:
        """
        Same algorithm as shuffle, driven by a fresh generator seeded with
        seed. Independent of this instance's state.
        """
        return seeded_shuffle(sequence, seed)


def shuffle(items: Sequence) -> list:
    """Entropy-driven shuffle on a fresh Nebula."""
    return Nebula().shuffle(items)

def seeded_shuffle(items: Sequence, seed: KeyLike) -> list:
    """Deterministic shuffle: same items and seed give the same order every call."""
    return Nebula(seed=seed).shuffle(items)

# -----------------------------
# Health Checks
# -----------------------------
def monobit_test(sequence: bytes, alpha: float = 0.0001) -> bool:
    """
    Frequency (monobit) test from NIST SP 800-22.

    Args:
        sequence: Bytes to test
        alpha: Significance level; the test passes when p-value >= alpha

    Returns:
        True if the proportion of one bits is consistent with randomness
    """
    bits = np.unpackbits(np.frombuffer(bytes(sequence), dtype=np.uint8))
    n = len(bits)
    if n == 0:
        return False
    s = 2 * int(bits.sum()) - n
    p_value = math.erfc(abs(s) / math.sqrt(2 * n))
    return p_value >= alpha
