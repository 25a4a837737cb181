import os
import sys
import logging
import argparse
from cryptex.utils.keygen import (
    MacAddressProvider, StaticIdentifierProvider, concat_4096, generate_device_key,
    generate_password_key, seed_from_keys
)
from cryptex.utils.keystore import (create_keystore, store_key_in_keystore, retrieve_key_from_keystore)
from cryptex.utils.kdf import (kdfwagen)
from cryptex.utils.menu import (
    menu_generate_keystore, menu_generate_keys, menu_encrypt, menu_decrypt,
    menu_derive_key, menu_show_table, print_table
)
from cryptex.models import (CryptexParams, TableDimensions, bcolors)
from cryptex.core import (encrypt_to_file, decrypt_from_file, get_table)

_DEFAULTS = CryptexParams()

def add_key_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--key1", help="First key")
    parser.add_argument("--key2", help="Second key")
    parser.add_argument("--seed", type=int, help="Table seed (default: derived from key1 and key2)")
    parser.add_argument("--password", required=True, help="Password for key derivation")
    parser.add_argument("--salt", required=True, help="Salt for key derivation")
    parser.add_argument("--keystore", default="keystore.json", help="Keystore filename")
    parser.add_argument("--passphrase", help="Keystore passphrase")
    parser.add_argument("--key_name", help="Load key1/key2/seed from this keystore entry")

def add_table_arguments(parser: argparse.ArgumentParser):
    d = _DEFAULTS.dimensions
    parser.add_argument("--x", type=int, default=d.x)
    parser.add_argument("--y", type=int, default=d.y)
    parser.add_argument("--z", type=int, default=d.z)

def resolve_keys(args) -> tuple:
    """key1, key2 and seed from a keystore entry when --key_name is given, else from the flags."""
    if args.key_name:
        if not args.passphrase:
            raise ValueError(f"{bcolors.FAIL}--passphrase is required with --key_name{bcolors.ENDC}")
        entry = retrieve_key_from_keystore(args.passphrase, args.key_name, args.keystore)
        key1, key2, seed = entry["key1"], entry["key2"], int(entry["seed"])
    else:
        if not args.key1 or not args.key2:
            raise ValueError(f"{bcolors.FAIL}--key1 and --key2 are required without --key_name{bcolors.ENDC}")
        key1, key2, seed = args.key1, args.key2, None
    if args.seed is not None:
        seed = args.seed
    if seed is None:
        seed = seed_from_keys(key1, key2)
    return key1, key2, seed

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cryptex - Nebula seeded table cipher")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    create_keystore_parser = subparsers.add_parser("create_keystore", help="Create encrypted keystore")
    create_keystore_parser.add_argument("--passphrase", required=True, help="Keystore passphrase")
    create_keystore_parser.add_argument("--keystore_file", default="keystore.json", help="Keystore filename")

    generate_parser = subparsers.add_parser("generate_keys", help="Generate key1, key2 and table seed")
    generate_parser.add_argument("--password", required=True, help="Password for key2 (at least 10 characters)")
    generate_parser.add_argument("--device_id", help="Device identifier (default: MAC address)")
    generate_parser.add_argument("--keystore", default="keystore.json", help="Keystore filename")
    generate_parser.add_argument("--passphrase", help="Keystore passphrase")
    generate_parser.add_argument("--key_name", help="Key name in keystore")

    encrypt_parser = subparsers.add_parser("encrypt", help="Encrypt a message or file")
    add_key_arguments(encrypt_parser)
    encrypt_parser.add_argument("--message", help="Message to encrypt")
    encrypt_parser.add_argument("--in_path", help="Input file path (encrypted as raw bytes)")
    encrypt_parser.add_argument("--file_type", choices=["json", "bin"], default="json", help="File type [JSON/BIN]")
    encrypt_parser.add_argument("--out_file", default="enc_cryptex")
    encrypt_parser.add_argument("--iterations", type=int, default=_DEFAULTS.iterations)
    encrypt_parser.add_argument("--key_length", type=int, default=_DEFAULTS.key_length)
    add_table_arguments(encrypt_parser)

    decrypt_parser = subparsers.add_parser("decrypt", help="Decrypt a ciphertext file")
    add_key_arguments(decrypt_parser)
    decrypt_parser.add_argument("--enc_file", default="enc_cryptex.json")
    decrypt_parser.add_argument("--file_type", choices=["json", "bin"], default="json")
    decrypt_parser.add_argument("--out_path", help="Where to write decrypted bytes")

    derive_parser = subparsers.add_parser("derive", help="Derive key material with kdfwagen")
    derive_parser.add_argument("--password", required=True)
    derive_parser.add_argument("--salt", required=True)
    derive_parser.add_argument("--iterations", type=int, default=_DEFAULTS.iterations)
    derive_parser.add_argument("--length", type=int, default=_DEFAULTS.key_length)

    table_parser = subparsers.add_parser("table", help="Print the character table for a seed")
    table_parser.add_argument("--seed", type=int, required=True)
    table_parser.add_argument("--characters", default=_DEFAULTS.characters)
    add_table_arguments(table_parser)
    return parser

def main(argv=None):
    parser = build_parser()
    args = parser.parse_known_args(argv)[0]

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        match args.command:
            case "create_keystore":
                create_keystore(args.passphrase, args.keystore_file)
                print(f"Keystore created: {args.keystore_file}")
            case "generate_keys":
                provider = StaticIdentifierProvider(args.device_id) if args.device_id else MacAddressProvider()
                key1 = concat_4096(generate_device_key(provider))
                key2 = concat_4096(generate_password_key(args.password))
                seed = seed_from_keys(key1, key2)
                if args.passphrase and args.key_name:
                    store_key_in_keystore(args.passphrase, args.key_name,
                                          {"key1": key1, "key2": key2, "seed": seed}, args.keystore)
                    print(f"Keys generated and stored in {args.keystore} as {args.key_name}")
                else:
                    print(f"key1: {key1}")
                    print(f"key2: {key2}")
                    print(f"seed: {seed}")
            case "encrypt":
                key1, key2, seed = resolve_keys(args)
                params = CryptexParams(
                    dimensions=TableDimensions(args.x, args.y, args.z),
                    iterations=args.iterations,
                    key_length=args.key_length
                )
                path = encrypt_to_file(
                    key1, key2, args.password, args.salt, seed,
                    message=args.message,
                    in_path=args.in_path,
                    params=params,
                    out_file=args.out_file,
                    file_type=args.file_type
                )
                print(f"Encrypted to {path}")
            case "decrypt":
                key1, key2, seed = resolve_keys(args)
                result = decrypt_from_file(key1, key2, args.password, args.salt, seed, args.enc_file, args.file_type)
                if isinstance(result, bytes):
                    out_path = args.out_path or "decrypted.bin"
                    with open(out_path, "wb") as f:
                        f.write(result)
                    print(f"Decrypted to {out_path}")
                elif args.out_path:
                    with open(args.out_path, "w") as f:
                        f.write(result)
                    print(f"Decrypted to {args.out_path}")
                else:
                    print(result)
            case "derive":
                with kdfwagen(args.password, args.salt, args.iterations, args.length) as km:
                    print(km.expose().hex())
            case "table":
                print_table(get_table(args.characters, args.seed, TableDimensions(args.x, args.y, args.z)))
            case _:
                _=os.system("cls") | os.system("clear")
                while True:
                    print(f"{bcolors.WARNING}{bcolors.BOLD}CRYPTEX - Nebula seeded table cipher{bcolors.ENDC}")
                    print(f"{bcolors.GREY}{bcolors.BOLD}[x:y:z]{bcolors.OKCYAN}========================================-{bcolors.ENDC}")
                    print("")
                    print(f"{bcolors.BOLD}1){bcolors.ENDC} Create encrypted keystore")
                    print(f"{bcolors.BOLD}2){bcolors.ENDC} Generate keys (device + password)")
                    print(f"{bcolors.BOLD}3){bcolors.ENDC} Encrypt message or file")
                    print(f"{bcolors.BOLD}4){bcolors.ENDC} Decrypt file")
                    print(f"{bcolors.BOLD}5){bcolors.ENDC} Derive key material")
                    print(f"{bcolors.BOLD}6){bcolors.ENDC} Show character table")
                    print(f"{bcolors.BOLD}0){bcolors.ENDC} Exit")
                    print("")
                    choice = input(f"{bcolors.BOLD}Choice: {bcolors.ENDC}").strip()
                    try:
                        match choice:
                            case "0":
                                break
                            case "1":
                                menu_generate_keystore()
                            case "2":
                                menu_generate_keys()
                            case "3":
                                menu_encrypt()
                            case "4":
                                menu_decrypt()
                            case "5":
                                menu_derive_key()
                            case "6":
                                menu_show_table()
                            case _:
                                print("Invalid choice")
                    except Exception as e:
                        print(f"{bcolors.FAIL}ERROR:{bcolors.ENDC}", e)
                    _=input(f"{bcolors.OKGREEN}Enter to continue...{bcolors.ENDC}")
                    _=os.system("cls") | os.system("clear")
    except Exception as e:
        print(f"{bcolors.FAIL}ERROR:{bcolors.ENDC}", e)
        sys.exit(1)

if __name__ == "__main__":
    main()
