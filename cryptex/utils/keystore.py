import json
import secrets
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives import hashes
from base64 import b64encode, b64decode, urlsafe_b64encode
from cryptex.models import (bcolors)
from cryptex.utils.errors import (CryptexError, ErrorKind)

KEYSTORE_ITERATIONS = 100000

# -----------------------------
# Key Management
# -----------------------------
def _fernet_for(passphrase: str, salt: bytes) -> Fernet:
    # PBKDF2-HMAC-SHA256, 32-byte output as Fernet expects
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KEYSTORE_ITERATIONS,
    )
    return Fernet(urlsafe_b64encode(kdf.derive(passphrase.encode())))

def _write_keystore(keystore: dict, keystore_file: str):
    try:
        with open(keystore_file, "w") as kf:
            json.dump(keystore, kf)
    except OSError as e:
        raise CryptexError(ErrorKind.FILE, f"Can't open file {keystore_file}: {e}") from e

def create_keystore(passphrase: str, keystore_file: str):
    """
    Create an empty encrypted keystore for cryptex keys and seeds.

    Uses PBKDF2 key derivation with Fernet symmetric encryption:
    - PBKDF2-HMAC-SHA256 with 100k iterations against brute force
    - Random salt stored in the keystore
    - Fernet (AES-128-CBC + HMAC-SHA256) seals each entry

    Args:
        passphrase: User passphrase for keystore encryption
        keystore_file: File path for keystore storage
    """
    salt = secrets.token_bytes(16)
    fernet = _fernet_for(passphrase, salt)
    # Canary entry lets load_keystore reject a wrong passphrase early
    keystore = {
        "salt": b64encode(salt).decode(),
        "check": fernet.encrypt(b"cryptex").decode(),
        "keys": {},
    }
    _write_keystore(keystore, keystore_file)

def load_keystore(passphrase: str, keystore_file: str):
    """
    Load and unlock an encrypted keystore.

    Returns:
        Tuple of (keystore_data, fernet_cipher)

    Raises:
        CryptexError(FILE): If the keystore cannot be read
        ValueError: If the passphrase is wrong
    """
    try:
        with open(keystore_file, "r") as kf:
            keystore = json.load(kf)
    except OSError as e:
        raise CryptexError(ErrorKind.FILE, f"Can't open file {keystore_file}: {e}") from e

    fernet = _fernet_for(passphrase, b64decode(keystore["salt"]))
    try:
        fernet.decrypt(keystore["check"].encode())
    except InvalidToken:
        raise ValueError(f"{bcolors.FAIL}Failed to unlock keystore. Wrong passphrase?{bcolors.ENDC}") from None
    return keystore, fernet

def store_key_in_keystore(passphrase: str, key_name: str, key_data: dict, keystore_file: str):
    """
    Seal key data (JSON-serializable dict) under key_name.

    Args:
        passphrase: Keystore passphrase
        key_name: Identifier for stored key
        key_data: Key material to store
        keystore_file: Path to keystore
    """
    keystore, fernet = load_keystore(passphrase, keystore_file)
    keystore["keys"][key_name] = fernet.encrypt(json.dumps(key_data).encode()).decode()
    _write_keystore(keystore, keystore_file)

def retrieve_key_from_keystore(passphrase: str, key_name: str, keystore_file: str) -> dict:
    """
    Retrieve and decrypt key data stored under key_name.

    Raises:
        ValueError: If key not found or decryption fails
    """
    keystore, fernet = load_keystore(passphrase, keystore_file)

    if key_name not in keystore["keys"]:
        raise ValueError(f"{bcolors.FAIL}Key {key_name} not found in keystore{bcolors.ENDC}")

    try:
        decrypted_key = fernet.decrypt(keystore["keys"][key_name].encode())
    except InvalidToken:
        raise ValueError(f"{bcolors.FAIL}Failed to decrypt key. Wrong passphrase?{bcolors.ENDC}") from None
    return json.loads(decrypted_key.decode())
