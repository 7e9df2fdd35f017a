import hashlib

import pytest

from bencoding import Encoder


def piece_hashes_for(blob, piece_length):
    return b"".join(
        hashlib.sha1(blob[i: i + piece_length]).digest()
        for i in range(0, len(blob), piece_length)
    )


@pytest.fixture
def make_multi_file_torrent(tmp_path):
    """
    Writes data files under tmp_path/data/<name>/ and a matching .torrent.

    `contents` is a list of (relative path, bytes). Returns
    (torrent path, data directory, list of full data file paths).
    """
    def _build(contents, piece_length, name="payload"):
        data_dir = tmp_path / "data"
        blob = b""
        files = []
        written = []
        for rel_path, data in contents:
            target = data_dir / name / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            files.append({"path": rel_path.split("/"), "length": len(data)})
            written.append(target)
            blob += data

        meta = {
            "announce": "http://tracker.example/announce",
            "info": {
                "name": name,
                "piece length": piece_length,
                "pieces": piece_hashes_for(blob, piece_length),
                "files": files,
            },
        }
        torrent_path = tmp_path / f"{name}.torrent"
        torrent_path.write_bytes(Encoder.encode(meta))
        return torrent_path, data_dir, written

    return _build


@pytest.fixture
def make_single_file_torrent(tmp_path):
    def _build(data, piece_length, name="single.bin"):
        data_dir = tmp_path / "data"
        data_dir.mkdir(parents=True, exist_ok=True)
        target = data_dir / name
        target.write_bytes(data)

        meta = {
            "info": {
                "name": name,
                "piece length": piece_length,
                "pieces": piece_hashes_for(data, piece_length),
                "length": len(data),
            },
        }
        torrent_path = tmp_path / f"{name}.torrent"
        torrent_path.write_bytes(Encoder.encode(meta))
        return torrent_path, data_dir, target

    return _build


def flip_byte(path, offset):
    with open(path, "r+b") as f:
        f.seek(offset)
        byte = f.read(1)
        f.seek(offset)
        f.write(bytes([byte[0] ^ 0xFF]))


@pytest.fixture
def corrupt():
    return flip_byte
