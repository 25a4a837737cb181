"""
CRYPTEX - Nebula seeded table cipher

Key Cryptographic Principles Documented:
Pseudo-Random Generation:

Nebula PRNG with a SHA3-512 ratcheted state expanded through SHAKE-256
Entropy pool fed from clocks, process and psutil system counters
Rejection sampling for unbiased bounded draws (Fisher-Yates shuffles)

Key Derivation:

HMAC-SHA3-512 as the pseudorandom function
kdfwagen: PBKDF2 (RFC 8018) over HMAC-SHA3-512 with iteration cost
Derived key material held in wipeable buffers

Cipher Construction:

Substitution through a seeded 3D character table (one symbol, many cells)
Coordinate serialization followed by key-derived bit rotations (diffusion)
SHAKE-256 keystream XOR masking keyed by key1 and the derived material
Every layer is exactly invertible for decryption

Key Management:

Machine-bound keys from the hardware (MAC) address
Password keys widened to 4096 bits with concat_4096
Secure key storage with PBKDF2 + Fernet encryption

Known limitation: ciphertexts carry no integrity tag. A wrong key,
password or seed produces wrong plaintext (or a decoding error), never
an authentication failure.

This implementation is for educational purposes and is not cryptographically secure.
"""
from cryptex.models import (
    BYTE_CHARACTERS, CHARACTERS, FILE_DIMENSIONS, Coordinate, CryptexParams, TableDimensions
)
from cryptex.utils.errors import (CryptexError, ErrorKind)
from cryptex.utils.encryption import (shift_bits, unshift_bits, xor_crypt3)
from cryptex.utils.kdf import (KeyMaterial, hmac, kdfwagen)
from cryptex.utils.nebula import (EntropyCollector, Nebula, monobit_test, seeded_shuffle, shuffle)
from cryptex.utils.table import (CharacterTable, build_table)
from cryptex.core import (
    decrypt3, decrypt_file, decrypt_from_file, encrypt3, encrypt_file, encrypt_to_file, get_table
)

__version__ = "0.1.0"

__all__ = [
    "BYTE_CHARACTERS", "CHARACTERS", "FILE_DIMENSIONS", "Coordinate", "CryptexParams", "TableDimensions",
    "CryptexError", "ErrorKind",
    "shift_bits", "unshift_bits", "xor_crypt3",
    "KeyMaterial", "hmac", "kdfwagen",
    "EntropyCollector", "Nebula", "monobit_test", "seeded_shuffle", "shuffle",
    "CharacterTable", "build_table",
    "decrypt3", "decrypt_file", "decrypt_from_file", "encrypt3", "encrypt_file", "encrypt_to_file", "get_table",
]
