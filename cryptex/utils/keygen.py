import hashlib
import hmac
import logging
import psutil
from typing import Dict, Protocol

from cryptex.utils.encryption import (KeyLike, as_bytes, shift_bits, unshift_bits, xor_crypt3)
from cryptex.utils.errors import (CryptexError, ErrorKind)
from cryptex.utils.kdf import (kdfwagen)

logger = logging.getLogger(__name__)

TRANSMIT_ITERATIONS = 5
PASSWORD_KEY_ITERATIONS = 300
MIN_PASSWORD_LENGTH = 10

# -----------------------------
# Device Identifier Providers
# -----------------------------
class DeviceIdentifierProvider(Protocol):
    def __call__(self) -> bytes: ...


class MacAddressProvider:
    """
    Uses the first non-zero hardware (link layer) address reported by psutil.

    Interfaces are visited in name order so that the choice is stable
    across calls on the same machine.
    """

    def __call__(self) -> bytes:
        for name, addrs in sorted(psutil.net_if_addrs().items()):
            for addr in addrs:
                if addr.family != psutil.AF_LINK or not addr.address:
                    continue
                mac = addr.address.lower().replace("-", ":")
                if mac.replace(":", "").strip("0"):
                    logger.debug("device identifier from interface %s", name)
                    return mac.encode()
        raise CryptexError(ErrorKind.NO_DEVICE_ID)


class StaticIdentifierProvider:
    """Fixed identifier, for tests and machines without a usable interface."""

    def __init__(self, identifier: KeyLike):
        self.identifier = as_bytes(identifier)

    def __call__(self) -> bytes:
        return self.identifier

# -----------------------------
# Key Generation
# -----------------------------
def digit_sum(text: str) -> int:
    """Sum of the decimal digits appearing in text."""
    return sum(int(c) for c in text if c.isdigit() and c.isascii())

def generate_device_key(provider: DeviceIdentifierProvider = None) -> str:
    """
    Derive a machine-bound key from a device identifier.

    The identifier is stretched with kdfwagen using its reverse as salt
    and digit_sum(identifier) * 10 rounds (at least one), and the result
    is hashed with SHA3-512.

    Args:
        provider: Source of the identifier, MacAddressProvider by default

    Returns:
        128-character hex key

    Raises:
        CryptexError(NO_DEVICE_ID): If the provider yields nothing
    """
    provider = provider or MacAddressProvider()
    identifier = provider()
    if not identifier:
        raise CryptexError(ErrorKind.NO_DEVICE_ID)
    rounds = max(1, digit_sum(identifier.decode('latin-1')) * 10)
    with kdfwagen(identifier, identifier[::-1], rounds, 64) as km:
        return hashlib.sha3_512(km.expose()).hexdigest()

def generate_password_key(password: str) -> str:
    """
    Derive a 128-character hex key from a password of at least 10 characters.

    Raises:
        CryptexError(SEED_TOO_SHORT): If the password is shorter than 10 characters
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise CryptexError(ErrorKind.SEED_TOO_SHORT)
    with kdfwagen(password, password[::-1], PASSWORD_KEY_ITERATIONS, 64) as km:
        return hashlib.sha3_512(km.expose()).hexdigest()

def concat_4096(text: str) -> str:
    """
    Widen a key: split text into 8 equal chunks and concatenate their
    SHA3-512 hex digests (8 x 512 = 4096 bits).

    Raises:
        CryptexError(ALIGNMENT): If len(text) is not a multiple of 8
    """
    if len(text) % 8 != 0:
        raise CryptexError(ErrorKind.ALIGNMENT)
    chunk_size = len(text) // 8
    return "".join(
        hashlib.sha3_512(text[i * chunk_size:(i + 1) * chunk_size].encode()).hexdigest()
        for i in range(8)
    )

def seed_from_keys(key1: str, key2: str) -> int:
    """Table seed shared by both parties: digit_sum(key1) * digit_sum(key2)."""
    return digit_sum(key1) * digit_sum(key2)

# -----------------------------
# Key Transmission
# -----------------------------
def cipher_key_transmitter(key1: KeyLike, seed: KeyLike, salt: KeyLike) -> Dict[bytes, bytes]:
    """
    Wrap a seed for transmission under key1.

    The seed is XOR-masked with key material derived from key1, then
    bit-shifted under a second derivation of that material. The SHA3-512
    digest of the clear seed travels alongside so the receiver can check
    it unwrapped with the right key.

    Returns:
        {wrapped_seed: seed_digest}
    """
    seed = as_bytes(seed)
    with kdfwagen(key1, salt, TRANSMIT_ITERATIONS, 64) as v1:
        masked = xor_crypt3(seed, v1.expose())
        with kdfwagen(v1.expose(), salt, TRANSMIT_ITERATIONS, 64) as v2:
            wrapped = shift_bits(masked, v2.expose())
    return {wrapped: hashlib.sha3_512(seed).digest()}

def recover_transmitted_key(wrapped: bytes, digest: bytes, key1: KeyLike, salt: KeyLike) -> bytes:
    """
    Unwrap a seed produced by cipher_key_transmitter.

    Raises:
        CryptexError(KEY_MISMATCH): If the unwrapped seed does not match digest
    """
    with kdfwagen(key1, salt, TRANSMIT_ITERATIONS, 64) as v1:
        with kdfwagen(v1.expose(), salt, TRANSMIT_ITERATIONS, 64) as v2:
            masked = unshift_bits(wrapped, v2.expose())
        seed = xor_crypt3(masked, v1.expose())
    if not hmac.compare_digest(hashlib.sha3_512(seed).digest(), digest):
        raise CryptexError(ErrorKind.KEY_MISMATCH)
    return seed
