import os

import pytest

from file_handler import DataFile, FileHandler, IOErrorKind, TorrentIOError
from bencoding import BencodeDict
from torrent import ExtractError, ExtractErrorKind, FileEntry, TorrentDescription, extract

HASH = b"h" * 20


def _multi():
    return TorrentDescription(
        name="payload",
        piece_length=4,
        piece_hashes=[HASH, HASH],
        files=[FileEntry(["a.bin"], 5), FileEntry(["sub", "b.bin"], 3)],
    )


class TestLayout:
    def test_single_file(self, tmp_path):
        description = TorrentDescription("single.bin", 4, [HASH], total_length=3)
        handler = FileHandler(description, str(tmp_path))
        assert handler.files == [DataFile(os.path.join(str(tmp_path), "single.bin"), 3, 0)]

    def test_multi_file_paths_and_offsets(self, tmp_path):
        handler = FileHandler(_multi(), str(tmp_path))
        root = os.path.join(str(tmp_path), "payload")
        assert handler.files == [
            DataFile(os.path.join(root, "a.bin"), 5, 0),
            DataFile(os.path.join(root, "sub", "b.bin"), 3, 5),
        ]
        assert handler.files[1].end == 8
        assert handler.total_length == 8


class TestChecks:
    def _write(self, tmp_path, a=b"12345", b=b"678"):
        (tmp_path / "payload" / "sub").mkdir(parents=True)
        (tmp_path / "payload" / "a.bin").write_bytes(a)
        (tmp_path / "payload" / "sub" / "b.bin").write_bytes(b)

    def test_all_present(self, tmp_path):
        self._write(tmp_path)
        FileHandler(_multi(), str(tmp_path)).check_all()

    def test_missing(self, tmp_path):
        (tmp_path / "payload").mkdir()
        (tmp_path / "payload" / "a.bin").write_bytes(b"12345")
        with pytest.raises(TorrentIOError) as exc:
            FileHandler(_multi(), str(tmp_path)).check_all()
        assert exc.value.kind == IOErrorKind.NOT_FOUND
        assert exc.value.path.endswith("b.bin")

    def test_directory_instead_of_file(self, tmp_path):
        (tmp_path / "payload" / "a.bin").mkdir(parents=True)
        with pytest.raises(TorrentIOError) as exc:
            FileHandler(_multi(), str(tmp_path)).check_all()
        assert exc.value.kind == IOErrorKind.NOT_A_FILE

    def test_size_mismatch(self, tmp_path):
        self._write(tmp_path, b=b"6789")
        with pytest.raises(TorrentIOError) as exc:
            FileHandler(_multi(), str(tmp_path)).check_all()
        assert exc.value.kind == IOErrorKind.SIZE_MISMATCH
        assert "expected 3, actual 4" in str(exc.value)

    def test_open_failure(self, tmp_path):
        data_file = DataFile(str(tmp_path / "nope.bin"), 1, 0)
        with pytest.raises(TorrentIOError) as exc:
            FileHandler.open_file(data_file)
        assert exc.value.kind == IOErrorKind.READ_FAILURE


class TestPathsStayInside:
    def test_nested_paths_stay_under_torrent_directory(self, tmp_path):
        description = extract(BencodeDict([(b"info", BencodeDict([
            (b"files", [
                BencodeDict([(b"length", 1), (b"path", [b"a", b"b", b"c.bin"])]),
                BencodeDict([(b"length", 1), (b"path", [b"d.bin"])]),
            ]),
            (b"name", b"payload"),
            (b"piece length", 4),
            (b"pieces", HASH),
        ]))]))
        root = os.path.join(str(tmp_path), "payload")
        for data_file in FileHandler(description, str(tmp_path)).files:
            assert os.path.commonpath([root, data_file.path]) == root

    def test_absolute_component_never_reaches_layout(self):
        root = BencodeDict([(b"info", BencodeDict([
            (b"files", [BencodeDict([(b"length", 1), (b"path", [b"/etc", b"hostname"])])]),
            (b"name", b"payload"),
            (b"piece length", 4),
            (b"pieces", HASH),
        ]))])
        with pytest.raises(ExtractError) as exc:
            extract(root)
        assert exc.value.kind == ExtractErrorKind.INVALID_FILE_ENTRY
