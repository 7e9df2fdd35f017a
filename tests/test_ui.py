from rich.console import Console

from checker import Totals
from piece_verifier import PieceMismatch, VerificationReport, VerifyMode
from torrent import FileEntry, TorrentDescription
from ui import CheckUI


def _ui():
    check_ui = CheckUI()
    check_ui.console = Console(record=True, width=120)
    return check_ui


def test_description():
    check_ui = _ui()
    check_ui.show_description(TorrentDescription(
        "payload", 4, [b"h" * 20, b"h" * 20],
        files=[FileEntry(["a.bin"], 5), FileEntry(["b.bin"], 3)],
        info_hash=b"\x01" * 20,
    ))
    text = check_ui.console.export_text()
    assert "payload" in text
    assert "01" * 20 in text


def test_corrupted_report_lists_files():
    check_ui = _ui()
    check_ui.show_report(VerificationReport(
        corrupted_pieces=frozenset({1}),
        corrupted_files_by_content=frozenset({"a.bin", "b.bin"}),
        corrupted_files_by_identity=frozenset({"c.bin"}),
        mismatches=(PieceMismatch(1, ("a.bin", "b.bin")),),
    ))
    text = check_ui.console.export_text()
    assert "a.bin" in text and "b.bin" in text
    assert "c.bin (name hash)" in text


def test_size_only_report():
    check_ui = _ui()
    check_ui.show_report(VerificationReport(mode=VerifyMode.SIZE_ONLY))
    assert "sizes match" in check_ui.console.export_text()


def test_totals():
    check_ui = _ui()
    check_ui.show_totals(Totals(torrents_processed=2, file_count=3, total_length=1024 ** 3))
    text = check_ui.console.export_text()
    assert "Torrents processed" in text
    assert "1.00 GB" in text


def test_log_line_shows_level_and_literal_message():
    check_ui = _ui()
    check_ui.print_log("piece [bold]7[/bold] failed", "WARNING")
    text = check_ui.console.export_text()
    assert "WARNING" in text
    assert "piece [bold]7[/bold] failed" in text
