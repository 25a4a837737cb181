import hashlib
import hmac as std_hmac
import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.hmac import HMAC
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from cryptex.utils.errors import (CryptexError, ErrorKind)
from cryptex.utils.kdf import (MAX_BLOCKS, PRF_OUTPUT_SIZE, KeyMaterial, hmac, kdfwagen)

# -----------------------------
# HMAC
# -----------------------------
def test_hmac_is_deterministic():
    assert hmac(b"key", b"message") == hmac(b"key", b"message")
    assert len(hmac(b"key", b"message")) == 64

def test_hmac_depends_on_key_and_message():
    assert hmac(b"key", b"message") != hmac(b"key2", b"message")
    assert hmac(b"key", b"message") != hmac(b"key", b"message2")

def test_hmac_matches_cryptography():
    for key in (b"k", b"k" * 200):
        h = HMAC(key, hashes.SHA3_512())
        h.update(b"payload")
        assert hmac(key, b"payload") == h.finalize()

def test_hmac_accepts_str_and_int():
    assert hmac("key", "msg") == hmac(b"key", b"msg")
    assert hmac(7, b"msg") == hmac(b"\x07", b"msg")
    assert hmac(-7, b"msg") == hmac(b"-\x07", b"msg")
    assert hmac(-7, b"msg") != hmac(7, b"msg")

# -----------------------------
# kdfwagen
# -----------------------------
def test_kdfwagen_length_and_determinism():
    km = kdfwagen("hunter2", "s0", 10, 100)
    assert len(km) == 100
    assert km == kdfwagen("hunter2", "s0", 10, 100)

def test_kdfwagen_depends_on_password():
    assert kdfwagen("hunter2", "s0", 10, 32) != kdfwagen("hunter3", "s0", 10, 32)

def test_kdfwagen_depends_on_salt_and_iterations():
    base = kdfwagen("hunter2", "s0", 10, 32)
    assert base != kdfwagen("hunter2", "s1", 10, 32)
    assert base != kdfwagen("hunter2", "s0", 11, 32)

def test_kdfwagen_is_prefix_stable():
    short = kdfwagen("pw", "salt", 5, 32).expose()
    long = kdfwagen("pw", "salt", 5, 160).expose()
    assert long[:32] == short

@pytest.mark.parametrize("iterations,length", [(1, 64), (3, 64), (50, 130)])
def test_kdfwagen_matches_pbkdf2(iterations, length):
    reference = PBKDF2HMAC(
        algorithm=hashes.SHA3_512(),
        length=length,
        salt=b"s0",
        iterations=iterations,
    ).derive(b"hunter2")
    assert kdfwagen(b"hunter2", b"s0", iterations, length).expose() == reference

def test_kdfwagen_matches_hashlib_pbkdf2():
    reference = hashlib.pbkdf2_hmac("sha3_512", b"password", b"salt", 20, 96)
    assert kdfwagen("password", "salt", 20, 96).expose() == reference

@pytest.mark.parametrize("iterations,length", [(0, 32), (-1, 32), (10, 0), (10, -5)])
def test_kdfwagen_rejects_bad_parameters(iterations, length):
    with pytest.raises(CryptexError) as exc:
        kdfwagen("pw", "salt", iterations, length)
    assert exc.value.kind is ErrorKind.INVALID_PARAMETER

def test_kdfwagen_rejects_oversized_output():
    with pytest.raises(CryptexError) as exc:
        kdfwagen("pw", "salt", 1, MAX_BLOCKS * PRF_OUTPUT_SIZE + 1)
    assert exc.value.kind is ErrorKind.INVALID_PARAMETER

# -----------------------------
# KeyMaterial
# -----------------------------
def test_key_material_wipes_on_exit():
    with kdfwagen("pw", "salt", 2, 32) as km:
        assert not km.wiped
        exposed = km.expose()
    assert km.wiped
    assert km.expose() == bytes(32)
    assert exposed != bytes(32)

def test_key_material_repr_hides_content():
    km = KeyMaterial(b"\x01secret")
    assert "secret" not in repr(km)
    assert "7 bytes" in repr(km)

def test_key_material_equality():
    assert KeyMaterial(b"abc") == b"abc"
    assert KeyMaterial(b"abc") == KeyMaterial(b"abc")
    assert KeyMaterial(b"abc") != KeyMaterial(b"abd")
    assert std_hmac.compare_digest(bytes(KeyMaterial(b"abc")), b"abc")

def test_kdfwagen_short_output_scenario():
    first = kdfwagen("hunter2", "s0", 4, 32)
    assert len(first) == 32
    assert first == kdfwagen("hunter2", "s0", 4, 32)
    assert first != kdfwagen("hunter3", "s0", 4, 32)

def test_kdfwagen_largest_output_matches_pbkdf2():
    length = MAX_BLOCKS * PRF_OUTPUT_SIZE
    reference = PBKDF2HMAC(algorithm=hashes.SHA3_512(), length=length, salt=b"salt", iterations=2).derive(b"pw")
    assert kdfwagen("pw", "salt", 2, length).expose() == reference
