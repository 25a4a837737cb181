import logging
import numpy as np
from typing import Dict, Optional

from cryptex.models import (Coordinate, TableDimensions)
from cryptex.utils.encryption import (KeyLike)
from cryptex.utils.errors import (CryptexError, ErrorKind)
from cryptex.utils.nebula import (seeded_shuffle)

logger = logging.getLogger(__name__)

# -----------------------------
# Character Table
# -----------------------------
class CharacterTable:
    """
    Immutable three-dimensional character table.

    Cells are stored as code points in a read-only uint32 array of shape
    (x, y, z); code points rather than numpy strings so that NUL survives
    in the byte alphabet. Flat indices follow C order (z varies fastest).
    For every symbol the table keeps the flat indices of its occurrences
    in that same scan order, which is what the cipher selects from.
    """

    def __init__(self, cells: np.ndarray, alphabet: str):
        self._cells = cells.astype(np.uint32)
        self._cells.flags.writeable = False
        self.alphabet = alphabet
        self.dimensions = TableDimensions(*self._cells.shape)
        positions: Dict[str, list] = {}
        for idx, cp in enumerate(self._cells.reshape(-1).tolist()):
            positions.setdefault(chr(cp), []).append(idx)
        self._positions = {ch: np.array(idx, dtype=np.int64) for ch, idx in positions.items()}
        for arr in self._positions.values():
            arr.flags.writeable = False

    @property
    def cells(self) -> np.ndarray:
        """Read-only code point array of shape (x, y, z)."""
        return self._cells

    def __getitem__(self, coord) -> str:
        x, y, z = coord
        return chr(self._cells[x, y, z])

    def __contains__(self, ch: str) -> bool:
        return ch in self._positions

    def __eq__(self, other) -> bool:
        if not isinstance(other, CharacterTable):
            return NotImplemented
        return self.alphabet == other.alphabet and np.array_equal(self._cells, other._cells)

    __hash__ = None

    def occurrences(self, ch: str) -> np.ndarray:
        """Flat indices of every cell holding ch, in scan order."""
        try:
            return self._positions[ch]
        except KeyError:
            raise CryptexError(ErrorKind.ENCODING, f"Character {ch!r} not found in character set") from None

    def coordinate(self, flat_index: int) -> Coordinate:
        return Coordinate(*(int(v) for v in np.unravel_index(flat_index, self.dimensions.shape)))

    def flat_index(self, coord) -> int:
        return int(np.ravel_multi_index(tuple(coord), self.dimensions.shape))

    def lookup(self, coords: np.ndarray) -> str:
        """Characters at an (n, 3) array of coordinates, as one string."""
        coords = np.asarray(coords, dtype=np.int64).reshape(-1, 3)
        points = self._cells[coords[:, 0], coords[:, 1], coords[:, 2]]
        return "".join(map(chr, points.tolist()))

    def to_string(self) -> str:
        """All cells in scan order."""
        return "".join(map(chr, self._cells.reshape(-1).tolist()))

    def to_bytes(self) -> bytes:
        """Scan-order UTF-8 serialization, for comparing and fingerprinting tables."""
        return self.to_string().encode('utf-8')

    def copy(self) -> "CharacterTable":
        return CharacterTable(self._cells.copy(), self.alphabet)

    def __repr__(self) -> str:
        d = self.dimensions
        return f"CharacterTable({d.x}x{d.y}x{d.z}, alphabet={len(self.alphabet)} symbols)"

# -----------------------------
# Table Generator
# -----------------------------
def build_table(character_sequence: str, seed: KeyLike, dimensions: Optional[TableDimensions] = None) -> CharacterTable:
    """
    Build the seeded character table the cipher permutes through.

    1. Deduplicate character_sequence, keeping first-seen order
    2. Cycle the alphabet until it fills the table volume
    3. Shuffle with Nebula.seeded_shuffle(extended, seed)
    4. Reshape into (x, y, z) in C order

    A pure function of (character_sequence, seed, dimensions).

    Args:
        character_sequence: Source symbols; repeats are ignored
        seed: Table seed (int, str or bytes)
        dimensions: Table extent, default 16x16x16

    Returns:
        Read-only CharacterTable

    Raises:
        CryptexError(EMPTY_INPUT): If character_sequence is empty
        CryptexError(DIMENSION): If an axis is not positive or the volume
            cannot hold every distinct symbol
    """
    dimensions = dimensions or TableDimensions()
    if not character_sequence:
        raise CryptexError(ErrorKind.EMPTY_INPUT, "Character sequence must not be empty")
    if min(dimensions.shape) <= 0:
        raise CryptexError(ErrorKind.DIMENSION, f"Table dimensions must be positive, got {dimensions.shape}")

    alphabet = "".join(dict.fromkeys(character_sequence))
    volume = dimensions.volume
    if volume < len(alphabet):
        raise CryptexError(
            ErrorKind.DIMENSION,
            f"Table volume {volume} cannot hold {len(alphabet)} distinct characters"
        )

    extended = [ord(alphabet[i % len(alphabet)]) for i in range(volume)]
    shuffled = seeded_shuffle(extended, seed)
    cells = np.array(shuffled, dtype=np.uint32).reshape(dimensions.shape)
    logger.debug("Built %dx%dx%d table over %d symbols", dimensions.x, dimensions.y, dimensions.z, len(alphabet))
    return CharacterTable(cells, alphabet)
