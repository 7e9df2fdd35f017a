from utils import bytes_to_text, logger

INT64_MASK = (1 << 64) - 1
INT64_SIGN_BIT = 1 << 63

DIGIT_0 = ord('0')
DIGIT_9 = ord('9')
COLON = ord(':')
MINUS = ord('-')
END = ord('e')

# Real torrents nest a handful of levels deep
MAX_NESTING_DEPTH = 256


class DecodeError(ValueError):
    """Malformed bencode. `offset` is the byte position where decoding gave up."""

    def __init__(self, offset, message="Invalid bencoding"):
        super().__init__(f"{message} at offset {offset}")
        self.offset = offset


class BencodeDict:
    """
    A bencoded dictionary kept exactly as it appeared on the wire.

    Entries are (key, value) pairs in wire order. Keys are not sorted and
    duplicates are kept; lookups through get() take the last occurrence.
    """

    def __init__(self, pairs=None):
        self.pairs = list(pairs) if pairs else []

    def append(self, key: bytes, value):
        self.pairs.append((key, value))

    def get(self, key, default=None):
        if isinstance(key, str):
            key = key.encode('utf-8')
        found = default
        for k, v in self.pairs:
            if k == key:
                found = v
        return found

    def get_all(self, key):
        if isinstance(key, str):
            key = key.encode('utf-8')
        return [v for k, v in self.pairs if k == key]

    def keys(self):
        return [k for k, _ in self.pairs]

    def __contains__(self, key):
        if isinstance(key, str):
            key = key.encode('utf-8')
        return any(k == key for k, _ in self.pairs)

    def __iter__(self):
        return iter(self.pairs)

    def __len__(self):
        return len(self.pairs)

    def __eq__(self, other):
        if not isinstance(other, BencodeDict):
            return NotImplemented
        return self.pairs == other.pairs

    def __repr__(self):
        return f"BencodeDict({self.pairs!r})"


def _is_digit(byte):
    return DIGIT_0 <= byte <= DIGIT_9


def _to_signed(value):
    value &= INT64_MASK
    return value - (1 << 64) if value & INT64_SIGN_BIT else value


class Decoder:
    """
    Decodes Bencoded data (d, l, i, s) used in torrent files.
    Uses a recursive descent parser.

    Every sub-parser returns None when the data at the cursor is not its kind
    of value (without moving the cursor) and raises DecodeError when it is
    its kind but malformed. Values are tried in a fixed order: string,
    integer, list, dictionary.
    """

    def __init__(self, data: bytes):
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("Decoder expects bytes or bytearray")
        self._data = bytes(data)
        self._index = 0
        self._depth = 0

    @property
    def position(self):
        return self._index

    def decode(self):
        """Main entry point for decoding."""
        try:
            value = self._decode_value()
        except RecursionError:
            raise DecodeError(self._index, "Nesting too deep") from None
        if value is None:
            raise DecodeError(self._index, "No bencoded value")

        trailing = len(self._data) - self._index
        if trailing:
            logger.warning(f"Ignoring {trailing} trailing bytes after offset {self._index}")
        return value

    def _decode_value(self):
        for parse in (self._decode_string, self._decode_int,
                      self._decode_list, self._decode_dict):
            value = parse()
            if value is not None:
                return value
        return None

    def _enter(self):
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            raise DecodeError(self._index - 1, f"Nesting deeper than {MAX_NESTING_DEPTH} levels")

    def _decode_string(self):
        data = self._data
        start = index = self._index

        length = 0
        while index < len(data) and _is_digit(data[index]):
            length = length * 10 + (data[index] - DIGIT_0)
            index += 1

        # A zero length (or no digits at all) is not a string.
        if not length:
            return None

        if index >= len(data) or data[index] != COLON:
            raise DecodeError(index, "Missing ':' after string length")

        payload_start = index + 1
        end = payload_start + length
        if end > len(data):
            raise DecodeError(start, f"String of length {length} is truncated")

        self._index = end
        return data[payload_start:end]

    def _decode_int(self):
        data = self._data
        index = self._index
        if index >= len(data) or data[index] != ord('i'):
            return None
        index += 1  # Skip 'i'

        value = 0
        negative = False
        while True:
            if index >= len(data):
                raise DecodeError(index, "Unterminated integer")
            byte = data[index]
            index += 1
            if _is_digit(byte):
                value = (value * 10 + (byte - DIGIT_0)) & INT64_MASK
            elif byte == MINUS:
                # The sign applies to the whole number wherever it appears.
                negative = True
            elif byte == END:
                break
            else:
                raise DecodeError(index - 1, f"Unexpected byte {bytes([byte])!r} in integer")

        self._index = index
        return _to_signed(-value if negative else value)

    def _decode_list(self):
        data = self._data
        if self._index >= len(data) or data[self._index] != ord('l'):
            return None
        self._index += 1  # Skip 'l'
        self._enter()

        lst = []
        while True:
            value = self._decode_value()
            if value is not None:
                lst.append(value)
                continue
            if self._index < len(data) and data[self._index] == END:
                self._index += 1  # Skip 'e'
                self._depth -= 1
                return lst
            raise DecodeError(self._index, "Invalid list element")

    def _decode_dict(self):
        data = self._data
        if self._index >= len(data) or data[self._index] != ord('d'):
            return None
        self._index += 1  # Skip 'd'
        self._enter()

        d = BencodeDict()
        while True:
            if self._index < len(data) and data[self._index] == END:
                self._index += 1  # Skip 'e'
                self._depth -= 1
                return d

            key = self._decode_string()
            if key is None:
                # Keys in bencoded dicts must be strings (bytes)
                raise DecodeError(self._index, "Dictionary key is not a string")

            value = self._decode_value()
            if value is None:
                raise DecodeError(self._index, "Invalid dictionary value")
            d.append(key, value)


class Encoder:
    """Encodes Python objects back into Bencoded bytes."""

    @staticmethod
    def encode(data):
        if isinstance(data, str):
            return Encoder.encode(data.encode('utf-8'))
        elif isinstance(data, int):
            return f"i{data}e".encode()
        elif isinstance(data, (bytes, bytearray)):
            return f"{len(data)}:".encode() + bytes(data)
        elif isinstance(data, list):
            return b"l" + b"".join(Encoder.encode(item) for item in data) + b"e"
        elif isinstance(data, BencodeDict):
            # Wire order, so decoded data encodes back to identical bytes
            encoded = b"d"
            for k, v in data:
                encoded += Encoder.encode(k) + Encoder.encode(v)
            return encoded + b"e"
        elif isinstance(data, dict):
            # Bencoding requires dict keys to be sorted lexicographically
            encoded = b"d"
            for k, v in sorted(data.items(), key=lambda item: _key_bytes(item[0])):
                encoded += Encoder.encode(k) + Encoder.encode(v)
            return encoded + b"e"
        else:
            raise TypeError(f"Cannot encode type: {type(data)}")


def _key_bytes(key):
    return key.encode('utf-8') if isinstance(key, str) else bytes(key)


def decode(data: bytes):
    """Decode bencoded bytes into bytes, int, list and BencodeDict values."""
    return Decoder(data).decode()


def encode(obj) -> bytes:
    return Encoder.encode(obj)


def render(value) -> str:
    """Readable dump of a decoded value tree."""
    if isinstance(value, (bytes, bytearray)):
        return f'"{bytes_to_text(bytes(value))}"'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, list):
        return "[" + ", ".join(render(item) for item in value) + "]"
    if isinstance(value, BencodeDict):
        return "{" + ", ".join(
            f'"{bytes_to_text(k)}" : {render(v)}' for k, v in value
        ) + "}"
    raise TypeError(f"Cannot render type: {type(value)}")
