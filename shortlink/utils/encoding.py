import string

# Base62 alphabet; position in the string is the digit value
ALPHABET = string.digits + string.ascii_lowercase + string.ascii_uppercase
BASE = len(ALPHABET)

_DIGIT_VALUES = {ch: value for value, ch in enumerate(ALPHABET)}


class CodecError(ValueError):
    pass


class EmptyInput(CodecError):
    def __init__(self):
        super().__init__("empty string cannot be decoded")


class InvalidSymbol(CodecError):
    def __init__(self, symbol: str, position: int):
        super().__init__(f"invalid character {symbol!r} at position {position} in base62 string")
        self.symbol = symbol
        self.position = position


def encode_base62(num: int) -> str:
    """Encode a non-negative integer to Base62, most significant digit first."""
    if num < 0:
        raise ValueError(f"cannot encode negative number: {num}")
    if num == 0:
        return ALPHABET[0]
    out = []
    while num:
        num, rem = divmod(num, BASE)
        out.append(ALPHABET[rem])
    return ''.join(reversed(out))


def decode_base62(s: str) -> int:
    """Decode a Base62 string back to the integer it encodes.

    Raises EmptyInput for "" and InvalidSymbol for any character outside
    ALPHABET.
    """
    if not s:
        raise EmptyInput()
    n = 0
    for position, ch in enumerate(s):
        value = _DIGIT_VALUES.get(ch)
        if value is None:
            raise InvalidSymbol(ch, position)
        n = n * BASE + value
    return n
