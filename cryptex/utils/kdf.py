import hashlib
import hmac as _hmac
import logging
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from cryptex.utils.encryption import (KeyLike, as_bytes)
from cryptex.utils.errors import (CryptexError, ErrorKind)

logger = logging.getLogger(__name__)

PRF_OUTPUT_SIZE = 64  # SHA3-512 digest size
MAX_BLOCKS = 255

# -----------------------------
# Key Material
# -----------------------------
class KeyMaterial:
    """
    Fixed-length derived key held in a mutable buffer.

    The buffer is zeroed by wipe(), and automatically when the object is
    used as a context manager:

        with kdfwagen(password, salt, 1000, 64) as km:
            ...  # km.expose() is valid here
        # km is now all zeros

    repr() never shows the key bytes.
    """

    def __init__(self, data: bytes):
        self._buf = bytearray(data)

    def expose(self) -> bytes:
        return bytes(self._buf)

    def wipe(self):
        for i in range(len(self._buf)):
            self._buf[i] = 0

    @property
    def wiped(self) -> bool:
        return not any(self._buf)

    def __len__(self) -> int:
        return len(self._buf)

    def __bytes__(self) -> bytes:
        return self.expose()

    def __eq__(self, other) -> bool:
        if isinstance(other, KeyMaterial):
            other = other._buf
        if not isinstance(other, (bytes, bytearray)):
            return NotImplemented
        return _hmac.compare_digest(bytes(self._buf), bytes(other))

    __hash__ = None

    def __enter__(self) -> "KeyMaterial":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.wipe()

    def __repr__(self) -> str:
        return f"KeyMaterial(<{len(self._buf)} bytes>)"

# -----------------------------
# HMAC / KDF
# -----------------------------
def hmac(key: KeyLike, message: KeyLike) -> bytes:
    """
    HMAC over SHA3-512.

    Deterministic and total: any key length is accepted (long keys are
    hashed down to the digest size as in RFC 2104).

    Args:
        key: HMAC key
        message: Data to authenticate

    Returns:
        64-byte digest
    """
    return _hmac.new(as_bytes(key), as_bytes(message), hashlib.sha3_512).digest()

def kdfwagen(password: KeyLike, salt: KeyLike, iterations: int, output_length: int) -> KeyMaterial:
    """
    Derive key material from a password and salt with iterated HMAC-SHA3-512.

    PBKDF2 (RFC 8018) with HMAC-SHA3-512 as the pseudorandom function:
    each 64-byte output block XORs `iterations` chained HMAC rounds, and
    the blocks are concatenated and truncated to output_length.

    Args:
        password: Low-entropy secret
        salt: Public salt
        iterations: Number of HMAC rounds per block (cost)
        output_length: Bytes of key material to produce (<= 255 * 64)

    Returns:
        KeyMaterial of exactly output_length bytes

    Raises:
        CryptexError(INVALID_PARAMETER): If iterations or output_length is
            zero/negative, or output_length exceeds the block limit
    """
    if iterations <= 0:
        raise CryptexError(ErrorKind.INVALID_PARAMETER, "iterations must be positive")
    if output_length <= 0:
        raise CryptexError(ErrorKind.INVALID_PARAMETER, "output_length must be positive")
    if output_length > MAX_BLOCKS * PRF_OUTPUT_SIZE:
        raise CryptexError(
            ErrorKind.INVALID_PARAMETER,
            f"output_length must not exceed {MAX_BLOCKS * PRF_OUTPUT_SIZE} bytes"
        )

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA3_512(),
        length=output_length,
        salt=as_bytes(salt),
        iterations=iterations,
    )
    derived = bytearray(kdf.derive(as_bytes(password)))
    logger.debug("kdfwagen: %d iteration(s) -> %d bytes", iterations, output_length)
    km = KeyMaterial(derived)
    for i in range(len(derived)):
        derived[i] = 0
    return km
