import enum
import os
import time
from dataclasses import dataclass
from typing import FrozenSet, Tuple

from file_handler import FileHandler, IOErrorKind, TorrentIOError
from torrent import ExtractError, ExtractErrorKind
from utils import identity_hash_from_name, new_identity_hasher, sha1_hash, logger


class VerifyMode(enum.Enum):
    FULL = "full"
    SIZE_ONLY = "size-only"


class PieceLayout:
    """The torrent's files seen as one byte range cut into fixed-size pieces."""

    def __init__(self, total_length, piece_length):
        self.total_length = total_length
        self.piece_length = piece_length

    @property
    def piece_count(self):
        return -(-self.total_length // self.piece_length)

    def piece_size(self, index):
        if not 0 <= index < self.piece_count:
            raise IndexError(f"Piece {index} out of range")
        if index == self.piece_count - 1:
            return self.total_length % self.piece_length or self.piece_length
        return self.piece_length


class PieceAccumulator:
    """
    The piece currently being assembled.

    `sources` lists the files that already contributed bytes to `buffer`,
    not counting the file being read right now. It is non-empty only when a
    piece spans a file boundary.
    """

    def __init__(self, piece_length):
        self.piece_length = piece_length
        self.buffer = bytearray()
        self.sources = []

    @property
    def missing(self):
        return self.piece_length - len(self.buffer)

    @property
    def is_full(self):
        return len(self.buffer) == self.piece_length

    def add(self, data):
        self.buffer += data

    def carry_over(self, path):
        self.sources.append(path)

    def take(self, current_path):
        """Returns the piece bytes and every file that contributed, then resets."""
        files = list(self.sources)
        if current_path not in files:
            files.append(current_path)
        data = bytes(self.buffer)
        self.buffer = bytearray()
        self.sources = []
        return data, tuple(files)


@dataclass(frozen=True)
class PieceMismatch:
    index: int
    files: Tuple[str, ...]


@dataclass(frozen=True)
class VerificationReport:
    corrupted_pieces: FrozenSet[int] = frozenset()
    corrupted_files_by_content: FrozenSet[str] = frozenset()
    corrupted_files_by_identity: FrozenSet[str] = frozenset()
    bytes_verified: int = 0
    pieces_checked: int = 0
    mismatches: Tuple[PieceMismatch, ...] = ()
    mode: VerifyMode = VerifyMode.FULL
    aborted: bool = False
    elapsed: float = 0.0

    @property
    def ok(self):
        return not (self.corrupted_pieces or self.corrupted_files_by_identity)

    @property
    def throughput(self):
        """Bytes hashed per second."""
        if self.elapsed <= 0:
            return 0.0
        return self.bytes_verified / self.elapsed


class PieceVerifier:
    """
    Hashes a torrent's files in declared order, one piece at a time.

    One instance serves one run. Pieces are checked strictly in order, so a
    bad piece can always be traced back to the files that fed it.
    """

    def __init__(self, piece_hashes, identity_hash=False, stop_on_mismatch=False, progress=None):
        self.piece_hashes = piece_hashes
        self.identity_hash = identity_hash
        self.stop_on_mismatch = stop_on_mismatch
        self.progress = progress

        self.next_piece = 0
        self.bytes_verified = 0
        self.corrupted_pieces = set()
        self.corrupted_by_content = set()
        self.corrupted_by_identity = set()
        self.mismatches = []
        self.aborted = False

    def check_piece(self, accumulator, current_path):
        index = self.next_piece
        data, files = accumulator.take(current_path)
        self.next_piece += 1
        self.bytes_verified += len(data)

        if sha1_hash(data) != self.piece_hashes[index]:
            self.corrupted_pieces.add(index)
            self.corrupted_by_content.update(files)
            self.mismatches.append(PieceMismatch(index, files))
            affected = ", ".join(f'"{path}"' for path in files)
            logger.error(f"SHA1 hash mismatch in piece {index}, affected file(s): {affected}")
            if self.stop_on_mismatch:
                logger.error("More files possibly affected, aborting torrent checksum verification")
                self.aborted = True
        return accumulator

    def scan_file(self, data_file, accumulator):
        """Feeds one file into the piece accumulator and returns it."""
        expected_identity = None
        identity = None
        if self.identity_hash:
            expected_identity = identity_hash_from_name(os.path.basename(data_file.path))
            if expected_identity:
                identity = new_identity_hasher()

        remaining = data_file.length
        with FileHandler.open_file(data_file) as f:
            while remaining:
                try:
                    chunk = f.read(min(accumulator.missing, remaining))
                except OSError as e:
                    raise TorrentIOError(data_file.path, IOErrorKind.READ_FAILURE) from e
                if not chunk:
                    raise TorrentIOError(data_file.path, IOErrorKind.READ_FAILURE,
                                         f"File ended {remaining} bytes early")
                remaining -= len(chunk)

                accumulator.add(chunk)
                if identity is not None:
                    identity.update(chunk)
                if self.progress:
                    self.progress(len(chunk))

                if accumulator.is_full:
                    accumulator = self.check_piece(accumulator, data_file.path)
                    if self.aborted:
                        return accumulator

        # This file's tail belongs to a piece that a later file completes
        if accumulator.buffer:
            accumulator.carry_over(data_file.path)

        if identity is not None and identity.hexdigest() != expected_identity:
            self.corrupted_by_identity.add(data_file.path)
            logger.error(f"MD5 hash mismatch, file name does not match its content: \"{data_file.path}\"")

        logger.debug(f"Processed file {data_file.path}")
        return accumulator

    def report(self, mode, elapsed):
        return VerificationReport(
            corrupted_pieces=frozenset(self.corrupted_pieces),
            corrupted_files_by_content=frozenset(self.corrupted_by_content),
            corrupted_files_by_identity=frozenset(self.corrupted_by_identity),
            bytes_verified=self.bytes_verified,
            pieces_checked=self.next_piece,
            mismatches=tuple(self.mismatches),
            mode=mode,
            aborted=self.aborted,
            elapsed=elapsed,
        )


def verify(base_dir, description, mode=VerifyMode.FULL, identity_hash=False,
           stop_on_mismatch=False, progress=None) -> VerificationReport:
    """
    Checks the files of `description` under `base_dir`.

    Missing, mistyped or wrongly sized files raise TorrentIOError before any
    hashing starts. In full mode, ExtractError (INCOMPLETE_METADATA) is raised
    when the declared file sizes need a different number of pieces than the
    torrent lists hashes for. Hash mismatches do not raise; they end up in the
    report.
    """
    started = time.time()
    file_handler = FileHandler(description, base_dir)
    file_handler.check_all()

    if mode is VerifyMode.SIZE_ONLY:
        logger.info(f"All {len(file_handler.files)} file size(s) match for {description.name}")
        return VerificationReport(mode=mode, elapsed=time.time() - started)

    layout = PieceLayout(file_handler.total_length, description.piece_length)
    if layout.piece_count != description.piece_count:
        raise ExtractError(
            ExtractErrorKind.INCOMPLETE_METADATA,
            f"Torrent data needs {layout.piece_count} pieces but {description.piece_count} hashes are listed"
        )

    verifier = PieceVerifier(description.piece_hashes, identity_hash, stop_on_mismatch, progress)
    accumulator = PieceAccumulator(description.piece_length)
    for data_file in file_handler.files:
        accumulator = verifier.scan_file(data_file, accumulator)
        if verifier.aborted:
            break

    # Handle the last (short) piece
    if accumulator.buffer and not verifier.aborted:
        verifier.check_piece(accumulator, file_handler.files[-1].path)

    report = verifier.report(mode, time.time() - started)
    if report.ok:
        logger.info(f"All {report.pieces_checked} pieces verified for {description.name}")
    return report
