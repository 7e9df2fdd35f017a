import enum
import os
from dataclasses import dataclass

from utils import logger


class IOErrorKind(enum.Enum):
    NOT_FOUND = "File does not exist"
    NOT_A_FILE = "Invalid filename, not a file"
    SIZE_MISMATCH = "File size mismatch"
    READ_FAILURE = "Could not read file"


class TorrentIOError(Exception):
    """A torrent's data file is missing, the wrong size or unreadable."""

    def __init__(self, path, kind, message=None):
        super().__init__(f"{message or kind.value}: {path}")
        self.path = path
        self.kind = kind


@dataclass
class DataFile:
    path: str
    length: int
    start: int  # offset in the concatenated torrent data

    @property
    def end(self):
        return self.start + self.length


class FileHandler:
    """Maps a torrent's files onto paths under the user's data directory."""

    def __init__(self, description, base_dir):
        self.description = description
        self.base_dir = base_dir
        self.files = self._layout_files()

    def _layout_files(self):
        """Ordered list of data files with their offsets in the torrent data."""
        if not self.description.is_multi_file:
            # Single-file mode: the torrent name is the file name
            full_path = os.path.join(self.base_dir, self.description.name)
            return [DataFile(full_path, self.description.total_length, 0)]

        # Multi-file mode: the torrent name is the directory holding the files
        root_dir = os.path.join(self.base_dir, self.description.name)
        current_offset = 0
        files = []
        for entry in self.description.files:
            full_path = os.path.join(root_dir, *entry.path)
            files.append(DataFile(full_path, entry.length, current_offset))
            current_offset += entry.length
        return files

    @property
    def total_length(self):
        return sum(f.length for f in self.files)

    def check_all(self):
        """Checks every file before anything gets hashed. Raises on the first problem."""
        for data_file in self.files:
            self.check_file(data_file)

    @staticmethod
    def check_file(data_file):
        path = data_file.path
        if not os.path.exists(path):
            raise TorrentIOError(path, IOErrorKind.NOT_FOUND)
        if not os.path.isfile(path):
            raise TorrentIOError(path, IOErrorKind.NOT_A_FILE)

        size = os.path.getsize(path)
        if size != data_file.length:
            raise TorrentIOError(
                path, IOErrorKind.SIZE_MISMATCH,
                f"File size mismatch (expected {data_file.length}, actual {size})"
            )
        logger.debug(f"Checked file {path} ({size} bytes)")

    @staticmethod
    def open_file(data_file):
        try:
            return open(data_file.path, 'rb')
        except OSError as e:
            raise TorrentIOError(
                data_file.path, IOErrorKind.READ_FAILURE,
                f"Could not open file for reading ({e.strerror})"
            ) from e
