import string
import hashlib
import logging

# Configure logging to look professional
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger("TorrentCheck")

SHA1_DIGEST_SIZE = 20
IDENTITY_HASH_LENGTH = 32

HEX_DIGITS = set(string.hexdigits)


def sha1_hash(data: bytes) -> bytes:
    """Computes the SHA-1 hash of the given binary data."""
    return hashlib.sha1(data).digest()


def new_identity_hasher():
    """Accumulator for the per-file identity hash (MD5)."""
    return hashlib.md5()


def identity_hash_from_name(file_name):
    """
    Returns the expected identity hash encoded in a file name, or None.

    The hash is the part of the base name before the first '.', and it has
    to be exactly 32 hex digits, e.g. 'd41d8cd98f00b204e9800998ecf8427e.bin'.
    """
    stem = file_name.split('.', 1)[0]
    if len(stem) != IDENTITY_HASH_LENGTH:
        return None
    if not all(c in HEX_DIGITS for c in stem):
        return None
    return stem.lower()


def bytes_to_text(data: bytes) -> str:
    """UTF-8 text when the bytes are valid UTF-8, otherwise lowercase hex."""
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        return data.hex()


def is_safe_path_component(text):
    """True when `text` names one entry inside a directory: no separators, not '.' or '..'."""
    if text in ("", ".", ".."):
        return False
    return not any(c in text for c in ("/", "\\", "\0"))


def format_size(num_bytes):
    """Human readable size, e.g. '1.50 GB'."""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.2f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.2f} TB"


def set_verbosity(verbose=False, log_file=None):
    """Adjusts the shared logger for a CLI run."""
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if log_file:
        handler = logging.FileHandler(log_file, encoding='utf-8')
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        ))
        logger.addHandler(handler)
    return logger
