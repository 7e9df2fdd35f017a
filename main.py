import argparse
import os

from checker import TorrentChecker
from piece_verifier import VerifyMode
from ui import ui
from utils import set_verbosity

EXIT_OK = 0
EXIT_CORRUPTED = 1
EXIT_FAILED = 2


def find_torrents(paths):
    """Expands directories into their .torrent files (sorted); files are kept as given."""
    torrents = []
    for path in paths:
        if os.path.isdir(path):
            torrents.extend(
                os.path.join(path, name) for name in sorted(os.listdir(path))
                if name.lower().endswith(".torrent")
            )
        else:
            torrents.append(path)
    return torrents


def build_parser():
    parser = argparse.ArgumentParser(
        prog="torrent-check",
        description="Verify files on disk against the piece hashes of .torrent files.",
    )
    parser.add_argument("torrents", nargs="+", help=".torrent files or directories holding them")
    parser.add_argument("-d", "--data-dir", default=".", help="directory holding the torrent data (default: .)")
    parser.add_argument("--size-only", action="store_true", help="only check that files exist with the declared sizes")
    parser.add_argument("--identity-hash", action="store_true",
                        help="also check files named after their MD5 hash (32 hex digits)")
    parser.add_argument("--stop-on-mismatch", action="store_true",
                        help="stop checking a torrent at its first corrupted piece")
    parser.add_argument("--dump", metavar="FILE", help="append a readable dump of each torrent to FILE")
    parser.add_argument("--log-file", metavar="FILE", help="also write log messages to FILE")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every processed file")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    set_verbosity(args.verbose, args.log_file)

    checker = TorrentChecker(
        args.data_dir,
        mode=VerifyMode.SIZE_ONLY if args.size_only else VerifyMode.FULL,
        identity_hash=args.identity_hash,
        stop_on_mismatch=args.stop_on_mismatch,
        dump_file=args.dump,
    )

    ui.console.print(ui.header())
    exit_code = EXIT_OK
    for torrent_path in find_torrents(args.torrents):
        with ui.progress() as progress:
            task = progress.add_task(os.path.basename(torrent_path), total=None)
            result = checker.check(torrent_path, progress=lambda n: progress.advance(task, n))

        if result.description is not None:
            ui.show_description(result.description)
        if result.error is not None:
            ui.show_error(torrent_path, result.error)
            exit_code = EXIT_FAILED
        else:
            ui.show_report(result.report)
            if not result.report.ok and exit_code == EXIT_OK:
                exit_code = EXIT_CORRUPTED

    ui.show_totals(checker.totals)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
