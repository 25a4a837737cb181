import os
from getpass import getpass
from cryptex.models import (CryptexParams, TableDimensions, bcolors)
from cryptex.utils.keystore import (create_keystore, store_key_in_keystore, retrieve_key_from_keystore)
from cryptex.utils.keygen import (
    MacAddressProvider, StaticIdentifierProvider, concat_4096, generate_device_key,
    generate_password_key, seed_from_keys
)
from cryptex.utils.kdf import (kdfwagen)
from cryptex.core import (encrypt_to_file, decrypt_from_file, get_table)

# -----------------------------
# Interactive Configuration Helpers
# -----------------------------
def options() -> CryptexParams:
    """
    Interactive parameter configuration for cryptex operations.

    Prompts for table dimensions and KDF cost with the CryptexParams
    defaults. Both parties must use the same values.
    """
    defaults = CryptexParams()
    d = defaults.dimensions
    x = int(input(f"Table size x (default {d.x}): ").strip() or d.x)
    y = int(input(f"Table size y (default {d.y}): ").strip() or d.y)
    z = int(input(f"Table size z (default {d.z}): ").strip() or d.z)
    iterations = int(input(f"KDF iterations (default {defaults.iterations}): ").strip() or defaults.iterations)
    key_length = int(input(f"Key material length in bytes (default {defaults.key_length}): ").strip() or defaults.key_length)
    return CryptexParams(dimensions=TableDimensions(x, y, z), iterations=iterations, key_length=key_length)

def prompt_keys() -> tuple:
    """
    Collect key1, key2 and seed, either from a keystore entry or typed in.

    A blank seed falls back to seed_from_keys(key1, key2).
    """
    use_keystore = input("Load keys from keystore? (y/n) [n]: ").strip().lower() or "n"
    if use_keystore == "y":
        keystore = input("Keystore filename (default keystore.json): ").strip() or "keystore.json"
        passphrase = getpass("Keystore passphrase: ")
        key_name = input("Key name in keystore: ")
        entry = retrieve_key_from_keystore(passphrase, key_name, keystore)
        return entry["key1"], entry["key2"], int(entry["seed"])

    key1 = input("Key 1: ").strip()
    key2 = input("Key 2: ").strip()
    seed_str = input("Table seed (blank = derived from keys): ").strip()
    seed = int(seed_str) if seed_str else seed_from_keys(key1, key2)
    return key1, key2, seed

# -----------------------------
# Menu Actions
# -----------------------------
def menu_generate_keystore():
    """Create an encrypted keystore (PBKDF2 + Fernet)."""
    passphrase = getpass("Enter keystore passphrase: ")
    keystore_file = input("Keystore filename (default keystore.json): ").strip() or "keystore.json"
    create_keystore(passphrase, keystore_file)
    print(f"Keystore created: {keystore_file}")

def menu_generate_keys():
    """
    Generate key1 from this device and key2 from a password.

    Both are widened with concat_4096; the table seed is derived from
    their digits. The set can be sealed in a keystore.
    """
    device_id = input("Device identifier (blank = this machine's MAC address): ").strip()
    provider = StaticIdentifierProvider(device_id) if device_id else MacAddressProvider()
    password = getpass("Password (at least 10 characters): ")

    key1 = concat_4096(generate_device_key(provider))
    key2 = concat_4096(generate_password_key(password))
    seed = seed_from_keys(key1, key2)
    print(f"{bcolors.OKCYAN}Key 1:{bcolors.ENDC} {key1}")
    print(f"{bcolors.OKCYAN}Key 2:{bcolors.ENDC} {key2}")
    print(f"{bcolors.OKCYAN}Seed:{bcolors.ENDC} {seed}")

    store = input("Store keys in keystore? (y/n) [n]: ").strip().lower() or "n"
    if store == "y":
        keystore = input("Keystore filename (default keystore.json): ").strip() or "keystore.json"
        passphrase = getpass("Keystore passphrase: ")
        key_name = input("Key name in keystore: ")
        store_key_in_keystore(passphrase, key_name, {"key1": key1, "key2": key2, "seed": seed}, keystore)
        print(f"Keys stored in {keystore} as {key_name}")

def menu_encrypt():
    """Encrypt a message or file with encrypt3 and write the ciphertext file."""
    key1, key2, seed = prompt_keys()
    password = getpass("Password: ")
    salt = input("Salt: ")

    in_path = input("Optional input file path (blank = prompt): ").strip() or None
    message = None
    if in_path is None:
        message = input("Message to encrypt: ")
    out_file = input("Output encrypted filename (default enc_cryptex): ").strip() or "enc_cryptex"
    file_type = input("Output file type (JSON/BIN) [json]: ").strip().lower() or "json"
    params = options()

    path = encrypt_to_file(key1, key2, password, salt, seed, message=message, in_path=in_path,
                           params=params, out_file=out_file, file_type=file_type)
    print(f"Encrypted to {path}")

def menu_decrypt():
    """Decrypt a ciphertext file written by menu_encrypt."""
    key1, key2, seed = prompt_keys()
    password = getpass("Password: ")
    salt = input("Salt: ")

    enc_file = input("Encrypted file to decrypt (default enc_cryptex): ").strip() or "enc_cryptex"
    file_type = input("File type (JSON/BIN) [json]: ").strip().lower() or "json"
    enc_file = enc_file + "." + file_type
    if not os.path.exists(enc_file):
        print("Encrypted file not found.")
        return

    result = decrypt_from_file(key1, key2, password, salt, seed, enc_file, file_type)
    if isinstance(result, bytes):
        out_path = input("Write decrypted bytes to (default decrypted.bin): ").strip() or "decrypted.bin"
        with open(out_path, "wb") as f:
            f.write(result)
        print(f"Decrypted to {out_path}")
    else:
        print("Decrypted message:", result)

def menu_derive_key():
    """Show kdfwagen output for a password and salt."""
    password = getpass("Password: ")
    salt = input("Salt: ")
    defaults = CryptexParams()
    iterations = int(input(f"Iterations (default {defaults.iterations}): ").strip() or defaults.iterations)
    length = int(input(f"Output length (default {defaults.key_length}): ").strip() or defaults.key_length)
    with kdfwagen(password, salt, iterations, length) as km:
        print(km.expose().hex())

def menu_show_table():
    """Print the character table for a seed, one x-layer at a time."""
    seed = int(input("Table seed: ").strip())
    params = options()
    print_table(get_table(params.characters, seed, params.dimensions))

def print_table(table):
    d = table.dimensions
    for x in range(d.x):
        print(f"{bcolors.GREY}-- layer x={x} --{bcolors.ENDC}")
        for y in range(d.y):
            print(repr("".join(table[x, y, z] for z in range(d.z))))
