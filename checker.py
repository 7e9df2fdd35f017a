from dataclasses import dataclass
from typing import Optional

from bencoding import DecodeError, render
from file_handler import TorrentIOError
from piece_verifier import VerificationReport, VerifyMode, verify
from torrent import ExtractError, TorrentDescription, extract, log_description, read_meta_info
from utils import logger


@dataclass
class CheckResult:
    torrent_path: str
    description: Optional[TorrentDescription] = None
    report: Optional[VerificationReport] = None
    error: Optional[Exception] = None

    @property
    def ok(self):
        return self.error is None and self.report is not None and self.report.ok


@dataclass
class Totals:
    torrents_processed: int = 0
    torrents_failed: int = 0
    torrents_corrupted: int = 0
    file_count: int = 0
    total_length: int = 0
    bytes_verified: int = 0

    def add(self, result):
        self.torrents_processed += 1
        if result.description is not None:
            self.file_count += max(len(result.description.files), 1)
            self.total_length += result.description.total_size
        if result.error is not None:
            self.torrents_failed += 1
        elif not result.report.ok:
            self.torrents_corrupted += 1
        if result.report is not None:
            self.bytes_verified += result.report.bytes_verified


class TorrentChecker:
    """
    Checks torrents one after the other against a data directory.

    A torrent that cannot be parsed or whose files are missing does not stop
    the run: the error is kept in its CheckResult and the next one is checked.
    """

    def __init__(self, data_dir, mode=VerifyMode.FULL, identity_hash=False,
                 stop_on_mismatch=False, dump_file=None):
        self.data_dir = data_dir
        self.mode = mode
        self.identity_hash = identity_hash
        self.stop_on_mismatch = stop_on_mismatch
        self.dump_file = dump_file
        self.totals = Totals()

    def load(self, torrent_path):
        meta_info = read_meta_info(torrent_path)
        if self.dump_file:
            with open(self.dump_file, 'a', encoding='utf-8') as f:
                f.write(render(meta_info) + "\n")
        description = extract(meta_info)
        log_description(description)
        return description

    def check(self, torrent_path, progress=None) -> CheckResult:
        logger.info(f"Processing torrent file: {torrent_path}")
        try:
            description = self.load(torrent_path)
        except (OSError, DecodeError, ExtractError) as e:
            logger.error(f"Failed to process file {torrent_path} as a torrent file: {e}")
            return self._record(CheckResult(str(torrent_path), error=e))

        try:
            report = verify(
                self.data_dir, description, mode=self.mode,
                identity_hash=self.identity_hash,
                stop_on_mismatch=self.stop_on_mismatch,
                progress=progress,
            )
        except (TorrentIOError, ExtractError) as e:
            logger.error(f"Could not verify {description.name}: {e}")
            return self._record(CheckResult(str(torrent_path), description, error=e))

        return self._record(CheckResult(str(torrent_path), description, report))

    def _record(self, result):
        self.totals.add(result)
        return result
