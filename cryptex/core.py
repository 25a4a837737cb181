import os
import json
import logging
import numpy as np
from functools import lru_cache
from typing import Optional, Tuple
from base64 import b64encode, b64decode
from binascii import Error as BinasciiError

from cryptex.models import (
    BYTE_CHARACTERS, FILE_DIMENSIONS, CryptexParams, TableDimensions, bcolors
)
from cryptex.utils.encryption import (
    KeyLike, as_bytes, shake, xor_bytes, shift_bits, unshift_bits, xor_crypt3,
    encode_coordinates, decode_coordinates
)
from cryptex.utils.errors import (CryptexError, ErrorKind)
from cryptex.utils.kdf import (KeyMaterial, kdfwagen)
from cryptex.utils.table import (CharacterTable, build_table)

logger = logging.getLogger(__name__)

MAGIC = b"CRYPTEX"

# -----------------------------
# Table Cache
# -----------------------------
@lru_cache(maxsize=32)
def _cached_table(characters: str, seed: bytes, dimensions: TableDimensions) -> CharacterTable:
    return build_table(characters, seed, dimensions)

def get_table(characters: str, seed: KeyLike, dimensions: TableDimensions) -> CharacterTable:
    """
    Build or retrieve the table for (characters, seed, dimensions).

    Tables are read-only once built, so a cached instance can serve any
    number of encrypt/decrypt calls.
    """
    return _cached_table(characters, as_bytes(seed), dimensions)

# -----------------------------
# Key Helpers
# -----------------------------
def _require_key(value: KeyLike, name: str) -> bytes:
    key = as_bytes(value)
    if not key:
        raise CryptexError(ErrorKind.EMPTY_KEY, f"{name} must not be empty")
    return key

def _mask_key(key1: bytes, km: KeyMaterial) -> bytes:
    # key1 repeated over the key material
    return xor_bytes(km.expose(), key1)

def _select_cells(plaintext: str, table: CharacterTable, key1: bytes, key2: bytes, km: KeyMaterial) -> np.ndarray:
    """
    Pick one table cell per plaintext character.

    When a character occupies several cells the choice for position i is
    occurrences[selector_i mod count], where selector_i is the i-th
    big-endian uint64 of SHAKE-256(key material, key1, key2). Decryption
    reads the coordinates directly, so it never has to repeat the choice.
    """
    n = len(plaintext)
    selectors = np.frombuffer(shake(8 * n, km.expose(), key1, key2, b"occurrence"), dtype='>u8')
    flat = np.empty(n, dtype=np.int64)
    for i, ch in enumerate(plaintext):
        occ = table.occurrences(ch)
        flat[i] = occ[int(selectors[i]) % len(occ)]
    return flat

# -----------------------------
# Encryption/Decryption
# -----------------------------
def encrypt3(plaintext: str, key1: KeyLike, key2: KeyLike, password: KeyLike, salt: KeyLike,
             seed: KeyLike, params: Optional[CryptexParams] = None) -> bytes:
    """
    Encrypt a string through the table, bit-shift and XOR layers.

    Pipeline:
    1. Derive key material from (password, salt) with kdfwagen
    2. Build (or fetch) the seeded character table
    3. Map each character to a table coordinate
    4. Serialize the coordinates
    5. shift_bits keyed by key2, then xor_crypt3 keyed by key1 ^ key material

    There is no integrity tag: decrypting with a wrong key or password
    yields wrong plaintext rather than an error.

    Args:
        plaintext: Text drawn from params.characters
        key1, key2: Non-empty keys (int, str or bytes)
        password: Password for key derivation
        salt: Salt for key derivation
        seed: Table seed
        params: Alphabet, table dimensions and KDF cost

    Returns:
        Ciphertext bytes (empty for empty plaintext)

    Raises:
        CryptexError(EMPTY_KEY): If key1 or key2 is empty
        CryptexError(ENCODING): If plaintext uses a character outside the alphabet
    """
    params = params or CryptexParams()
    k1 = _require_key(key1, "key1")
    k2 = _require_key(key2, "key2")
    if not plaintext:
        return b""

    with kdfwagen(password, salt, params.iterations, params.key_length) as km:
        table = get_table(params.characters, seed, params.dimensions)
        missing = set(plaintext).difference(table.alphabet)
        if missing:
            raise CryptexError(
                ErrorKind.ENCODING,
                f"Character {sorted(missing)[0]!r} not found in character set"
            )

        flat = _select_cells(plaintext, table, k1, k2, km)
        coords = np.stack(np.unravel_index(flat, params.dimensions.shape), axis=1)
        payload = encode_coordinates(coords, params.dimensions)

        shifted = shift_bits(payload, k2)
        ciphertext = xor_crypt3(shifted, _mask_key(k1, km))

    logger.debug("encrypt3: %d characters -> %d bytes", len(plaintext), len(ciphertext))
    return ciphertext

def decrypt3(ciphertext: bytes, key1: KeyLike, key2: KeyLike, password: KeyLike, salt: KeyLike,
             seed: KeyLike, params: Optional[CryptexParams] = None) -> str:
    """
    Exact inverse of encrypt3 with the same keys, password, salt, seed and params.

    Raises:
        CryptexError(EMPTY_KEY): If key1 or key2 is empty
        CryptexError(DECODING): If the unmasked stream is not a whole number
            of in-bounds coordinates
    """
    params = params or CryptexParams()
    k1 = _require_key(key1, "key1")
    k2 = _require_key(key2, "key2")
    if not ciphertext:
        return ""

    with kdfwagen(password, salt, params.iterations, params.key_length) as km:
        unmasked = xor_crypt3(bytes(ciphertext), _mask_key(k1, km))
    payload = unshift_bits(unmasked, k2)
    coords = decode_coordinates(payload, params.dimensions)

    table = get_table(params.characters, seed, params.dimensions)
    plaintext = table.lookup(coords)
    logger.debug("decrypt3: %d bytes -> %d characters", len(ciphertext), len(plaintext))
    return plaintext

def file_params(params: Optional[CryptexParams] = None) -> CryptexParams:
    """Params for raw bytes: the 256-symbol byte alphabet with FILE_DIMENSIONS."""
    base = params or CryptexParams(dimensions=FILE_DIMENSIONS)
    return CryptexParams(
        characters=BYTE_CHARACTERS,
        dimensions=base.dimensions,
        iterations=base.iterations,
        key_length=base.key_length,
    )

def encrypt_file(data: bytes, key1: KeyLike, key2: KeyLike, password: KeyLike, salt: KeyLike,
                 seed: KeyLike, params: Optional[CryptexParams] = None) -> bytes:
    """encrypt3 over arbitrary bytes, each byte carried as one latin-1 symbol."""
    return encrypt3(bytes(data).decode('latin-1'), key1, key2, password, salt, seed, file_params(params))

def decrypt_file(ciphertext: bytes, key1: KeyLike, key2: KeyLike, password: KeyLike, salt: KeyLike,
                 seed: KeyLike, params: Optional[CryptexParams] = None) -> bytes:
    """Inverse of encrypt_file."""
    return decrypt3(ciphertext, key1, key2, password, salt, seed, file_params(params)).encode('latin-1')

# -----------------------------
# Serialization and File I/O
# -----------------------------
def params_to_metadata(params: CryptexParams, mode: str) -> dict:
    d = params.dimensions
    return {
        "mode": mode,
        "dimensions": [d.x, d.y, d.z],
        "iterations": params.iterations,
        "key_length": params.key_length,
        "characters": params.characters if mode == "text" else None,
    }

def metadata_to_params(metadata: dict) -> CryptexParams:
    try:
        dims = TableDimensions(*metadata["dimensions"])
        params = CryptexParams(
            dimensions=dims,
            iterations=int(metadata["iterations"]),
            key_length=int(metadata["key_length"]),
        )
        if metadata.get("mode", "text") == "text" and metadata.get("characters"):
            params.characters = metadata["characters"]
    except (KeyError, TypeError, ValueError) as e:
        raise CryptexError(ErrorKind.FILE, f"Invalid ciphertext metadata: {e}") from None
    return params

def write_ciphertext(path: str, file_type: str, ciphertext: bytes, metadata: dict):
    """
    Store ciphertext with the parameters needed to rebuild its table.

    json: {"cryptex_metadata": ..., "ciphertext_b64": ...}
    bin:  MAGIC || header length (4 bytes) || JSON header || raw ciphertext
    """
    try:
        if file_type == "json":
            with open(path, "w") as f:
                json.dump({"cryptex_metadata": metadata, "ciphertext_b64": b64encode(ciphertext).decode()}, f)
        elif file_type == "bin":
            header = json.dumps(metadata).encode()
            with open(path, "wb") as f:
                f.write(MAGIC)
                f.write(len(header).to_bytes(4, 'big'))
                f.write(header)
                f.write(ciphertext)
        else:
            raise CryptexError(ErrorKind.INVALID_PARAMETER, f"Unknown file type {file_type}")
    except OSError as e:
        raise CryptexError(ErrorKind.FILE, f"Can't open file {path}: {e}") from e

def read_ciphertext(path: str, file_type: str) -> Tuple[bytes, dict]:
    """Inverse of write_ciphertext; returns (ciphertext, metadata)."""
    try:
        if file_type == "json":
            with open(path, "r") as f:
                payload = json.load(f)
            return b64decode(payload["ciphertext_b64"]), payload["cryptex_metadata"]
        if file_type == "bin":
            with open(path, "rb") as f:
                if f.read(len(MAGIC)) != MAGIC:
                    raise CryptexError(ErrorKind.FILE, "Invalid file format")
                header_len = int.from_bytes(f.read(4), 'big')
                metadata = json.loads(f.read(header_len))
                return f.read(), metadata
        raise CryptexError(ErrorKind.INVALID_PARAMETER, f"Unknown file type {file_type}")
    except OSError as e:
        raise CryptexError(ErrorKind.FILE, f"Can't open file {path}: {e}") from e
    except (KeyError, TypeError, json.JSONDecodeError, BinasciiError) as e:
        raise CryptexError(ErrorKind.FILE, f"Invalid file format: {e}") from e

def encrypt_to_file(key1: KeyLike, key2: KeyLike, password: KeyLike, salt: KeyLike, seed: KeyLike,
                    message: Optional[str] = None, in_path: Optional[str] = None,
                    params: Optional[CryptexParams] = None, out_file: str = "enc_cryptex",
                    file_type: str = "json") -> str:
    """
    Encrypt a text message (or a file's bytes) and write it to out_file.<file_type>.

    Returns:
        Path of the written ciphertext file

    Raises:
        CryptexError(FILE): If in_path cannot be read or is the output path
    """
    out_path = out_file + "." + file_type
    if in_path:
        if os.path.abspath(in_path) == os.path.abspath(out_path):
            raise CryptexError(ErrorKind.FILE, f"Output file {out_path} would overwrite the input file")
        try:
            with open(in_path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise CryptexError(ErrorKind.FILE, f"Can't open file {in_path}: {e}") from e
        params = file_params(params)
        ciphertext = encrypt_file(data, key1, key2, password, salt, seed, params)
        metadata = params_to_metadata(params, "bytes")
    else:
        if message is None:
            raise ValueError(f"{bcolors.FAIL}Message required for text mode{bcolors.ENDC}")
        params = params or CryptexParams()
        ciphertext = encrypt3(message, key1, key2, password, salt, seed, params)
        metadata = params_to_metadata(params, "text")

    write_ciphertext(out_path, file_type, ciphertext, metadata)
    return out_path

def decrypt_from_file(key1: KeyLike, key2: KeyLike, password: KeyLike, salt: KeyLike, seed: KeyLike,
                      enc_file: str, file_type: str = "json"):
    """
    Read a ciphertext file and decrypt it with the parameters it records.

    Returns:
        str for text-mode files, bytes for files encrypted from in_path
    """
    ciphertext, metadata = read_ciphertext(enc_file, file_type)
    params = metadata_to_params(metadata)
    if metadata.get("mode") == "bytes":
        return decrypt_file(ciphertext, key1, key2, password, salt, seed, params)
    return decrypt3(ciphertext, key1, key2, password, salt, seed, params)
