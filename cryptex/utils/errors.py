from enum import Enum

# -----------------------------
# Error Model
# -----------------------------
class ErrorKind(Enum):
    """
    Closed set of failure kinds with stable numeric codes.

    Codes never change meaning; new kinds are appended with the next
    free number.
    """
    DECODING = (1, "Malformed coordinate stream")
    FILE = (2, "Can't open file")
    NO_DEVICE_ID = (3, "No mac address found")
    SEED_TOO_SHORT = (4, "Seed too short (10 char)")
    EMPTY_KEY = (5, "Key is too short")
    ENCODING = (6, "Character not found in character set")
    ALIGNMENT = (7, "Error when dividing by 8")
    ENTROPY = (8, "No entropy source available")
    RANGE = (9, "Lower bound is greater than upper bound")
    INVALID_PARAMETER = (10, "Invalid parameter")
    EMPTY_INPUT = (11, "Input must not be empty")
    DIMENSION = (12, "Table dimensions cannot hold the character set")
    KEY_MISMATCH = (13, "Key does not match the transmitted digest")

    def __init__(self, code: int, default_message: str):
        self.code = code
        self.default_message = default_message

    @classmethod
    def from_code(cls, code: int) -> "ErrorKind":
        for kind in cls:
            if kind.code == code:
                return kind
        raise KeyError(f"Unknown error code {code}")


class CryptexError(ValueError):
    """
    Single exception type raised by every cryptex operation.

    Carries the ErrorKind, its stable code and a message. Subclasses
    ValueError so callers catching ValueError see cipher failures too.
    """

    def __init__(self, kind: ErrorKind, message: str = None):
        self.kind = kind
        self.code = kind.code
        self.message = message or kind.default_message
        super().__init__(self.message)

    @classmethod
    def from_code(cls, code: int, message: str = None) -> "CryptexError":
        return cls(ErrorKind.from_code(code), message)

    def __repr__(self) -> str:
        return f"CryptexError({self.kind.name}, code={self.code}, message={self.message!r})"
