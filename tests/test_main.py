import pytest

from cryptex.main import (main)
from cryptex.utils.kdf import (kdfwagen)
from cryptex.utils.keygen import (StaticIdentifierProvider, concat_4096, generate_device_key)
from cryptex.utils.keystore import (retrieve_key_from_keystore)

KEYS = ["--key1", "7", "--key2", "13", "--password", "hunter2", "--salt", "s0"]

def last_line(capsys) -> str:
    return capsys.readouterr().out.strip().splitlines()[-1]

def test_derive_prints_hex(capsys):
    main(["derive", "--password", "hunter2", "--salt", "s0", "--iterations", "10", "--length", "16"])
    assert last_line(capsys) == kdfwagen("hunter2", "s0", 10, 16).expose().hex()

def test_table_prints_every_layer(capsys):
    main(["table", "--seed", "42", "--x", "2", "--y", "3", "--z", "4", "--characters", "abcdefgh"])
    out = capsys.readouterr().out
    assert out.count("layer x=") == 2
    assert len(out.strip().splitlines()) == 2 + 2 * 3

def test_encrypt_decrypt_message(tmp_path, capsys):
    out_file = str(tmp_path / "msg")
    main(["encrypt", *KEYS, "--seed", "42", "--message", "hello world",
          "--out_file", out_file, "--iterations", "10"])
    assert (tmp_path / "msg.json").exists()
    main(["decrypt", *KEYS, "--seed", "42", "--enc_file", out_file + ".json"])
    assert last_line(capsys) == "hello world"

def test_encrypt_decrypt_binary_file(tmp_path):
    source = tmp_path / "data.bin"
    source.write_bytes(b"\x00\x01\x02binary\xff")
    out_file = str(tmp_path / "enc")
    target = tmp_path / "restored.bin"
    main(["encrypt", *KEYS, "--in_path", str(source), "--out_file", out_file, "--file_type", "bin"])
    main(["decrypt", *KEYS, "--enc_file", out_file + ".bin", "--file_type", "bin", "--out_path", str(target)])
    assert target.read_bytes() == source.read_bytes()

def test_encrypt_refuses_to_overwrite_input(tmp_path, capsys):
    source = tmp_path / "data.bin"
    source.write_bytes(b"\x00\x01\x02binary\xff")
    with pytest.raises(SystemExit) as exc:
        main(["encrypt", *KEYS, "--in_path", str(source), "--out_file", str(tmp_path / "data"), "--file_type", "bin"])
    assert exc.value.code == 1
    assert "overwrite" in capsys.readouterr().out
    assert source.read_bytes() == b"\x00\x01\x02binary\xff"

def test_generate_keys_prints_keys(capsys):
    main(["generate_keys", "--password", "correcthorse", "--device_id", "00:11:22:33:44:55"])
    out = capsys.readouterr().out
    expected = concat_4096(generate_device_key(StaticIdentifierProvider("00:11:22:33:44:55")))
    assert f"key1: {expected}" in out
    assert "seed: " in out

def test_generate_keys_into_keystore(tmp_path, capsys):
    keystore = str(tmp_path / "keystore.json")
    main(["create_keystore", "--passphrase", "pp", "--keystore_file", keystore])
    main(["generate_keys", "--password", "correcthorse", "--device_id", "dev-1",
          "--keystore", keystore, "--passphrase", "pp", "--key_name", "me"])
    entry = retrieve_key_from_keystore("pp", "me", keystore)
    assert set(entry) == {"key1", "key2", "seed"}

    out_file = str(tmp_path / "ks")
    stored = ["--password", "hunter2", "--salt", "s0", "--keystore", keystore, "--passphrase", "pp", "--key_name", "me"]
    main(["encrypt", *stored, "--message", "from keystore", "--out_file", out_file, "--iterations", "10"])
    main(["decrypt", *stored, "--enc_file", out_file + ".json"])
    assert last_line(capsys) == "from keystore"

def test_missing_keys_exit_with_error(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["encrypt", "--password", "pw", "--salt", "s", "--message", "x", "--out_file", str(tmp_path / "x")])
    assert exc.value.code == 1
    assert "ERROR:" in capsys.readouterr().out

def test_missing_ciphertext_file_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["decrypt", *KEYS, "--enc_file", str(tmp_path / "missing.json")])
    assert exc.value.code == 1
    assert "Can't open file" in capsys.readouterr().out
