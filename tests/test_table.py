import numpy as np
import pytest

from cryptex.models import (BYTE_CHARACTERS, CHARACTERS, TableDimensions)
from cryptex.utils.errors import (CryptexError, ErrorKind)
from cryptex.utils.table import (build_table)

SMALL = TableDimensions(2, 2, 2)

# -----------------------------
# Table generation
# -----------------------------
def test_small_table_is_deterministic():
    a = build_table("abcdefgh", 42, SMALL)
    b = build_table("abcdefgh", 42, SMALL)
    assert a == b
    assert a.to_string() == b.to_string()

def test_small_table_holds_each_symbol_once():
    table = build_table("abcdefgh", 42, SMALL)
    assert sorted(table.to_string()) == list("abcdefgh")
    for ch in "abcdefgh":
        assert len(table.occurrences(ch)) == 1

def test_different_seed_changes_layout():
    layouts = {build_table(CHARACTERS, seed).to_string() for seed in (1, 2, 3)}
    assert len(layouts) == 3

def test_seed_types_normalise():
    assert build_table("abcdefgh", "seed", SMALL) == build_table("abcdefgh", b"seed", SMALL)

def test_default_table_covers_alphabet():
    table = build_table(CHARACTERS, 7)
    assert table.dimensions == TableDimensions(16, 16, 16)
    assert len(table.to_string()) == 4096
    assert set(table.to_string()) == set(CHARACTERS)
    counts = [len(table.occurrences(ch)) for ch in CHARACTERS]
    # 4096 cells cycled over 95 symbols
    assert min(counts) == 4096 // 95
    assert max(counts) == 4096 // 95 + 1

def test_duplicates_in_sequence_are_ignored():
    table = build_table("aabbccdd", 5, TableDimensions(1, 2, 2))
    assert table.alphabet == "abcd"
    assert sorted(table.to_string()) == list("abcd")

def test_byte_alphabet_keeps_nul():
    table = build_table(BYTE_CHARACTERS, 11, TableDimensions(8, 8, 8))
    assert "\x00" in table
    assert len(table.occurrences("\x00")) == 2

# -----------------------------
# Table access
# -----------------------------
def test_cells_are_read_only():
    table = build_table("abcdefgh", 42, SMALL)
    with pytest.raises(ValueError):
        table.cells[0, 0, 0] = ord("z")

def test_coordinate_and_lookup_agree():
    table = build_table(CHARACTERS, 3)
    for ch in "Az9~ ":
        flat = int(table.occurrences(ch)[0])
        coord = table.coordinate(flat)
        assert table[coord] == ch
        assert table.flat_index(coord) == flat
        assert table.lookup(np.array([coord])) == ch

def test_scan_order_is_c_order():
    table = build_table("abcdefgh", 42, SMALL)
    assert table.coordinate(1) == (0, 0, 1)
    assert table.coordinate(2) == (0, 1, 0)
    assert table.coordinate(4) == (1, 0, 0)

def test_unknown_character_is_encoding_error():
    table = build_table("abcdefgh", 42, SMALL)
    assert "z" not in table
    with pytest.raises(CryptexError) as exc:
        table.occurrences("z")
    assert exc.value.kind is ErrorKind.ENCODING

def test_copy_is_equal():
    table = build_table("abcdefgh", 42, SMALL)
    assert table.copy() == table
    assert table.to_bytes() == table.to_string().encode()

# -----------------------------
# Errors
# -----------------------------
def test_empty_sequence_rejected():
    with pytest.raises(CryptexError) as exc:
        build_table("", 1, SMALL)
    assert exc.value.kind is ErrorKind.EMPTY_INPUT

@pytest.mark.parametrize("dims", [TableDimensions(0, 2, 2), TableDimensions(2, -1, 2), TableDimensions(1, 1, 2)])
def test_bad_dimensions_rejected(dims):
    with pytest.raises(CryptexError) as exc:
        build_table("abc", 1, dims)
    assert exc.value.kind is ErrorKind.DIMENSION
