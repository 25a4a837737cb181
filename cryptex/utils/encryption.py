import hashlib
import numpy as np
from typing import Union

from cryptex.models import (TableDimensions)
from cryptex.utils.errors import (CryptexError, ErrorKind)

KeyLike = Union[int, str, bytes, bytearray]

# -----------------------------
# Utilities
# -----------------------------
def shake(expand_bytes: int, *chunks: bytes) -> bytes:
    """
    SHAKE-256 extendable output function used for every derived stream.

    Each chunk is length-prefixed before absorption so that
    ("ab", "c") and ("a", "bc") never collide.

    Args:
        expand_bytes: Number of output bytes to generate
        *chunks: Input data chunks to hash

    Returns:
        Pseudorandom bytes of specified length
    """
    xof = hashlib.shake_256()
    for c in chunks:
        xof.update(len(c).to_bytes(4, 'big'))
        xof.update(c)
    return xof.digest(expand_bytes)

def as_bytes(value: KeyLike) -> bytes:
    """
    Normalise a key, password, salt or seed into bytes.

    Integers use their minimal big-endian form (at least one byte), so 7
    becomes b"\\x07" and -7 becomes b"-\\x07"; strings are UTF-8 encoded.
    """
    if isinstance(value, bool):
        raise CryptexError(ErrorKind.INVALID_PARAMETER, "Boolean is not a valid key value")
    if isinstance(value, int):
        if value < 0:
            # b"-" followed by the magnitude, so -7 and 7 never share bytes
            return b"-" + as_bytes(-value)
        return value.to_bytes(max(1, (value.bit_length() + 7) // 8), 'big')
    if isinstance(value, str):
        return value.encode('utf-8')
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise CryptexError(ErrorKind.INVALID_PARAMETER, f"Unsupported key type {type(value).__name__}")

def xor_bytes(data: bytes, key: bytes) -> bytes:
    """XOR data against key repeated to the data length."""
    if not data:
        return b""
    arr = np.frombuffer(data, dtype=np.uint8)
    reps = -(-len(data) // len(key))
    mask = np.frombuffer(key * reps, dtype=np.uint8)[:len(data)]
    return (arr ^ mask).tobytes()

# -----------------------------
# Bit Shifter
# -----------------------------
def rotation_schedule(key: KeyLike, length: int) -> np.ndarray:
    """
    Per-byte rotation amounts in [0, 8) derived from a key.

    The schedule is the SHA3-512 digest of the key, taken mod 8 and
    tiled over the payload: position i rotates by digest[i % 64] % 8.
    """
    digest = np.frombuffer(hashlib.sha3_512(as_bytes(key)).digest(), dtype=np.uint8)
    return np.resize(digest % 8, length).astype(np.uint8)

def shift_bits(data: bytes, key: KeyLike) -> bytes:
    """
    Rotate every byte left by a key-derived amount (diffusion layer).

    Total over any input: the empty payload maps to the empty payload.

    Args:
        data: Payload bytes
        key: Any key value; only its digest is used

    Returns:
        Rotated bytes of the same length
    """
    if not data:
        return b""
    arr = np.frombuffer(bytes(data), dtype=np.uint8)
    r = rotation_schedule(key, len(arr))
    rotated = (arr << r) | (arr >> ((8 - r) % 8))
    return rotated.astype(np.uint8).tobytes()

def unshift_bits(data: bytes, key: KeyLike) -> bytes:
    """Exact inverse of shift_bits: rotate every byte right by the same schedule."""
    if not data:
        return b""
    arr = np.frombuffer(bytes(data), dtype=np.uint8)
    r = rotation_schedule(key, len(arr))
    rotated = (arr >> r) | (arr << ((8 - r) % 8))
    return rotated.astype(np.uint8).tobytes()

# -----------------------------
# XOR Cipher
# -----------------------------
def xor_crypt3(data: bytes, key: KeyLike) -> bytes:
    """
    Mask data with a SHAKE-256 keystream expanded from key.

    Self-inverse: xor_crypt3(xor_crypt3(b, k), k) == b.

    Raises:
        CryptexError(EMPTY_KEY): If key is empty
    """
    key = as_bytes(key)
    if not key:
        raise CryptexError(ErrorKind.EMPTY_KEY, "XOR key must not be empty")
    if not data:
        return b""
    keystream = shake(len(data), key, b"xor_crypt3")
    return xor_bytes(bytes(data), keystream)

# -----------------------------
# Coordinate Codec
# -----------------------------
def component_width(dims: TableDimensions) -> int:
    """Bytes per coordinate component: 1, 2 or 4 depending on the largest axis."""
    largest = max(dims.shape)
    if largest <= 1 << 8:
        return 1
    if largest <= 1 << 16:
        return 2
    return 4

def encode_coordinates(coords: np.ndarray, dims: TableDimensions) -> bytes:
    """
    Serialize an (n, 3) coordinate array to big-endian bytes.

    Each component is written in component_width(dims) bytes, x then y
    then z for each position.
    """
    w = component_width(dims)
    return np.asarray(coords).astype(f'>u{w}').tobytes()

def decode_coordinates(payload: bytes, dims: TableDimensions) -> np.ndarray:
    """
    Parse a coordinate stream back into an (n, 3) int64 array.

    Raises:
        CryptexError(DECODING): If the length is not a whole number of
            coordinates or a component lies outside the table
    """
    w = component_width(dims)
    if len(payload) % (3 * w) != 0:
        raise CryptexError(
            ErrorKind.DECODING,
            f"Coordinate stream length {len(payload)} is not a multiple of {3 * w}"
        )
    coords = np.frombuffer(payload, dtype=f'>u{w}').astype(np.int64).reshape(-1, 3)
    bounds = np.array(dims.shape, dtype=np.int64)
    if np.any(coords >= bounds):
        raise CryptexError(ErrorKind.DECODING, "Coordinate outside table bounds")
    return coords
