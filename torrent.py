import enum
from dataclasses import dataclass, field
from typing import List, Optional

from bencoding import BencodeDict, Encoder, decode
from utils import SHA1_DIGEST_SIZE, bytes_to_text, format_size, is_safe_path_component, sha1_hash, logger

# Keys we know about but do not use. Anything else unexpected is an error.
TOLERATED_INFO_KEYS = (b"name.utf-8", b"md5sum")


class ExtractErrorKind(enum.Enum):
    NOT_A_DICTIONARY = "not a dictionary"
    MISSING_INFO_DICTIONARY = "missing info dictionary"
    INVALID_FILE_ENTRY = "invalid file entry"
    MALFORMED_PIECE_HASHES = "malformed piece hashes"
    UNRECOGNIZED_KEY = "unrecognized key"
    INCOMPLETE_METADATA = "incomplete metadata"


class ExtractError(ValueError):
    """The decoded tree is not a usable torrent description."""

    def __init__(self, kind, message=None):
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass
class FileEntry:
    path: List[str]
    length: int


@dataclass
class TorrentDescription:
    """
    Everything needed to check a torrent's data on disk.

    Single-file torrents have `total_length` set and no `files`; multi-file
    torrents have `files` and `total_length` is None. `name` is the file name
    in the first case and the directory name in the second.
    """

    name: str
    piece_length: int
    piece_hashes: List[bytes]
    files: List[FileEntry] = field(default_factory=list)
    total_length: Optional[int] = None
    info_hash: Optional[bytes] = None

    @property
    def is_multi_file(self):
        return bool(self.files)

    @property
    def total_size(self):
        if self.is_multi_file:
            return sum(f.length for f in self.files)
        return self.total_length

    @property
    def piece_count(self):
        return len(self.piece_hashes)


def _split_piece_hashes(pieces: bytes):
    """
    The 'pieces' string is a concatenation of 20-byte SHA1 hashes.
    We split it into a list.
    """
    return [pieces[i: i + SHA1_DIGEST_SIZE] for i in range(0, len(pieces), SHA1_DIGEST_SIZE)]


def _parse_file_entry(entry):
    if not isinstance(entry, BencodeDict):
        raise ExtractError(ExtractErrorKind.INVALID_FILE_ENTRY, "A 'files' entry is not a dictionary")

    path = entry.get(b"path")
    length = entry.get(b"length")

    if not isinstance(path, list) or not path:
        raise ExtractError(ExtractErrorKind.INVALID_FILE_ENTRY, "A 'files' entry has no 'path' list")
    for component in path:
        if not isinstance(component, bytes):
            raise ExtractError(ExtractErrorKind.INVALID_FILE_ENTRY,
                               "A 'files' entry path component is not a string")
    if not isinstance(length, int) or length < 0:
        raise ExtractError(ExtractErrorKind.INVALID_FILE_ENTRY, "A 'files' entry has no valid 'length'")

    components = [bytes_to_text(c) for c in path]
    for component in components:
        if not is_safe_path_component(component):
            raise ExtractError(ExtractErrorKind.INVALID_FILE_ENTRY,
                               f"A 'files' entry has an unsafe path component: {component!r}")

    return FileEntry(components, length)


def extract(root) -> TorrentDescription:
    """
    Projects a decoded torrent tree onto a TorrentDescription.

    Entries of the info dictionary are folded in wire order, so a duplicated
    key overwrites what an earlier one set. A known key holding a value of the
    wrong type is treated like any other unknown key.
    """
    if not isinstance(root, BencodeDict):
        raise ExtractError(ExtractErrorKind.NOT_A_DICTIONARY,
                           "Could not process the torrent root node as a dictionary")

    info = root.get(b"info")
    if not isinstance(info, BencodeDict):
        raise ExtractError(ExtractErrorKind.MISSING_INFO_DICTIONARY,
                           "Could not find the 'info' dictionary entry in torrent")

    name = None
    piece_length = None
    pieces = None
    total_length = None
    files = []

    for key, value in info:
        if key == b"files":
            if not isinstance(value, list):
                raise ExtractError(ExtractErrorKind.INVALID_FILE_ENTRY,
                                   "Could not process the 'files' entry as a list")
            files = [_parse_file_entry(entry) for entry in value]
        elif key == b"length" and isinstance(value, int):
            total_length = value
        elif key == b"name" and isinstance(value, bytes):
            name = bytes_to_text(value)
        elif key == b"piece length" and isinstance(value, int):
            piece_length = value
        elif key == b"pieces" and isinstance(value, bytes):
            if len(value) % SHA1_DIGEST_SIZE:
                raise ExtractError(ExtractErrorKind.MALFORMED_PIECE_HASHES,
                                   f"Bad torrent hashes string, not a multiple of {SHA1_DIGEST_SIZE}")
            pieces = value
        elif key in TOLERATED_INFO_KEYS:
            logger.warning(f"Ignoring the '{bytes_to_text(key)}' key in the 'info' dictionary")
        else:
            raise ExtractError(ExtractErrorKind.UNRECOGNIZED_KEY,
                               f"Unrecognized key in the torrent 'info' dictionary: {bytes_to_text(key)}")

    if not name:
        raise ExtractError(ExtractErrorKind.INCOMPLETE_METADATA, "Torrent has no 'name'")
    if not is_safe_path_component(name):
        raise ExtractError(ExtractErrorKind.INCOMPLETE_METADATA, f"Torrent has an unsafe 'name': {name!r}")
    if piece_length is None or piece_length <= 0:
        raise ExtractError(ExtractErrorKind.INCOMPLETE_METADATA, "Torrent has no valid 'piece length'")
    if not pieces:
        raise ExtractError(ExtractErrorKind.INCOMPLETE_METADATA, "Torrent has no 'pieces'")
    if (total_length is not None) == bool(files):
        raise ExtractError(ExtractErrorKind.INCOMPLETE_METADATA,
                           "Torrent must have either a 'length' or a non-empty 'files' list")
    if total_length is not None and total_length < 0:
        raise ExtractError(ExtractErrorKind.INCOMPLETE_METADATA, "Torrent has a negative 'length'")

    return TorrentDescription(
        name=name,
        piece_length=piece_length,
        piece_hashes=_split_piece_hashes(pieces),
        files=files,
        total_length=total_length,
        info_hash=sha1_hash(Encoder.encode(info)),
    )


def read_meta_info(file_path):
    """Reads and decodes a .torrent file into its raw value tree."""
    with open(file_path, 'rb') as f:
        data = f.read()
    return decode(data)


def log_description(description):
    logger.info(f"Loaded Torrent: {description.name}")
    if description.is_multi_file:
        logger.info(f"Files in torrent: {len(description.files)}")
    logger.info(f"Size: {format_size(description.total_size)}")
    logger.info(f"Pieces: {description.piece_count} (Length: {description.piece_length})")
    logger.info(f"Info Hash: {description.info_hash.hex()}")


def load_torrent(file_path) -> TorrentDescription:
    description = extract(read_meta_info(file_path))
    log_description(description)
    return description
