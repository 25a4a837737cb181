import string
from dataclasses import dataclass, field
from typing import NamedTuple

# -----------------------------
# CLI Colors
# -----------------------------
class bcolors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    GREY = '\033[90m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'

# -----------------------------
# Alphabets
# -----------------------------
# 95 printable symbols: letters, digits, punctuation and space
CHARACTERS = string.ascii_letters + string.digits + string.punctuation + " "

# Every latin-1 code point, used to carry raw bytes through the table
BYTE_CHARACTERS = "".join(chr(i) for i in range(256))

# -----------------------------
# Table Geometry
# -----------------------------
@dataclass(frozen=True)
class TableDimensions:
    """
    Extent of the three-dimensional character table.

    The table is addressed as table[x][y][z] and flattened in C order,
    so z varies fastest: flat = (x * y_dim + y) * z_dim + z.
    """
    x: int = 16
    y: int = 16
    z: int = 16

    @property
    def volume(self) -> int:
        return self.x * self.y * self.z

    @property
    def shape(self) -> tuple:
        return (self.x, self.y, self.z)


# 512 cells comfortably hold the 256-symbol byte alphabet
FILE_DIMENSIONS = TableDimensions(8, 8, 8)


class Coordinate(NamedTuple):
    """Cell address inside a CharacterTable."""
    x: int
    y: int
    z: int

# -----------------------------
# Core Parameters
# -----------------------------
@dataclass
class CryptexParams:
    """
    Core parameters for the cryptex pipeline.

    The cipher chains three layers that must all be rebuilt identically
    for decryption:
    - A seeded 3D character table (alphabet + seed + dimensions)
    - Password-derived key material (iterations + key_length)
    - Bit rotation and XOR masking keyed from key2 and key1
    """
    characters: str = CHARACTERS  # Source alphabet for the table
    dimensions: TableDimensions = field(default_factory=TableDimensions)  # Table extent
    iterations: int = 1000  # KDF cost (HMAC rounds per output block)
    key_length: int = 64  # KeyMaterial size in bytes (one SHA3-512 block)
