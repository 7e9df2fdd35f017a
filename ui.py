from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, BarColumn, DownloadColumn, TextColumn, TransferSpeedColumn
from rich.table import Table
from rich.text import Text
from datetime import datetime

from piece_verifier import VerifyMode
from utils import format_size

console = Console()

LEVEL_STYLES = {
    "INFO": "bold green",
    "WARNING": "bold yellow",
    "ERROR": "bold red",
}


class CheckUI:
    def __init__(self):
        self.console = console

    def header(self):
        """Returns the branding header."""
        grid = Table.grid(expand=True)
        grid.add_column(justify="center", ratio=1)
        grid.add_column(justify="right")

        title = Text("TorrentCheck", style="bold cyan", justify="center")
        subtitle = Text("Piece hash verification", style="bold magenta", justify="center")

        grid.add_row(title, datetime.now().strftime("%H:%M:%S"))
        grid.add_row(subtitle, "")

        return Panel(grid, style="white on black")

    def print_log(self, message, level="INFO"):
        """One timestamped line, coloured by level."""
        style = LEVEL_STYLES.get(level, "bold white")
        stamp = datetime.now().strftime("%H:%M:%S")
        self.console.print(f"[dim]{stamp}[/] [{style}]{level:<7}[/] {escape(message)}")

    def show_description(self, description):
        """Displays what a torrent declares."""
        table = Table(box=None, show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")

        if description.is_multi_file:
            table.add_row("Directory", description.name)
            table.add_row("Files", str(len(description.files)))
        else:
            table.add_row("File", description.name)
        table.add_row("Piece length", str(description.piece_length))
        table.add_row("Pieces", str(description.piece_count))
        table.add_row("Total size", f"{description.total_size:,} bytes ({format_size(description.total_size)})")
        if description.info_hash:
            table.add_row("Info hash", description.info_hash.hex())

        self.console.print(Panel(table, title="Torrent", border_style="blue"))

    def show_report(self, report):
        """Displays the outcome of one verification run."""
        if report.mode is VerifyMode.SIZE_ONLY:
            summary = Text("OK: all file sizes match (contents not read)", style="bold green")
            self.console.print(Panel(summary, title="Result", border_style="green"))
            return

        if report.ok:
            summary = Text(
                f"OK: {report.pieces_checked} pieces, {format_size(report.bytes_verified)} verified",
                style="bold green"
            )
            if report.elapsed > 0 and report.bytes_verified:
                summary.append(f" ({format_size(report.throughput)}/s)", style="green")
            self.console.print(Panel(summary, title="Result", border_style="green"))
            return

        table = Table(title="Corrupted data", box=None)
        table.add_column("Piece", style="magenta", justify="right")
        table.add_column("Affected files", style="red")
        for mismatch in report.mismatches:
            table.add_row(str(mismatch.index), "\n".join(mismatch.files))
        for path in sorted(report.corrupted_files_by_identity):
            table.add_row("-", f"{path} (name hash)")

        title = "Result (aborted)" if report.aborted else "Result"
        self.console.print(Panel(table, title=title, border_style="red"))

    def show_error(self, torrent_path, error):
        self.print_log(f"{torrent_path}: {error}", "ERROR")

    def show_totals(self, totals):
        table = Table(title="Totals", box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white", justify="right")

        gigabytes = totals.total_length / (1024 ** 3)
        table.add_row("Torrents processed", str(totals.torrents_processed))
        table.add_row("Torrents corrupted", str(totals.torrents_corrupted))
        table.add_row("Torrents failed", str(totals.torrents_failed))
        table.add_row("Files", str(totals.file_count))
        table.add_row("Data size", f"{totals.total_length:,} bytes")
        table.add_row("", f"{gigabytes:.2f} GB / {gigabytes / 1024:.4f} TB")
        table.add_row("Bytes verified", f"{totals.bytes_verified:,}")

        self.console.print(Panel(table, border_style="blue"))

    def progress(self):
        """Progress bar for hashing; feed it with advance(task, n_bytes)."""
        return Progress(
            TextColumn("[bold cyan]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=self.console,
            transient=True,
        )


ui = CheckUI()
