# __main__.py
# Description: Command line entry point. Runs a capture session and prints log events as they arrive.
#
# Imports
import asyncio
import sys
from typing import Optional
#
# Third-Party Imports
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
#
# Local Imports
from interview_capture import __version__
from interview_capture.Audio import MicrophoneSource
from interview_capture.errors import AcquisitionError
from interview_capture.Pipeline import create_default_pipeline
from interview_capture.state import CaptureLogEntry, CaptureLogKind, CaptureSnapshot
from interview_capture.Utils.logging_config import configure_logging, truncate_preview
#
#######################################################################################################################
#
# Functions:

KIND_STYLES = {
    CaptureLogKind.SCREENSHOT: "dim",
    CaptureLogKind.RECOGNITION: "cyan",
    CaptureLogKind.ANALYSIS: "magenta",
    CaptureLogKind.SPEECH: "green",
    CaptureLogKind.RESUME: "yellow",
}


def print_log_entry(console: Console, entry: CaptureLogEntry) -> None:
    style = KIND_STYLES.get(entry.kind, "white")
    line = f"[{style}]{entry.kind.value:<11}[/{style}] {escape(entry.summary)}"
    if entry.preview and entry.kind != CaptureLogKind.SPEECH:
        line += f"\n            [dim]{escape(truncate_preview(entry.preview))}[/dim]"
    console.print(line)


def print_summary(console: Console, snapshot: CaptureSnapshot) -> None:
    table = Table(title=f"Session {snapshot.session_id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Screen captures", str(len(snapshot.screen_captures)))
    table.add_row("Log entries", str(len(snapshot.capture_logs)))
    table.add_row("Transcript words", str(snapshot.word_count))
    table.add_row("Technologies", ", ".join(snapshot.detected_technologies) or "-")
    console.print(table)
    if snapshot.transcript:
        console.print(Panel(escape(snapshot.transcript), title="Transcript"))


def print_devices(console: Console) -> None:
    table = Table(title="Audio input devices")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Channels", justify="right")
    table.add_column("Sample rate", justify="right")
    for device in MicrophoneSource.list_devices():
        marker = " (default)" if device["is_default"] else ""
        table.add_row(str(device["id"]), escape(device["name"]) + marker, str(device["channels"]),
                      f"{device['sample_rate']:.0f}")
    console.print(table)


async def run_capture(duration: Optional[float], overrides: dict, console: Console) -> int:
    last_printed: Optional[CaptureLogEntry] = None

    def on_snapshot(snapshot: CaptureSnapshot) -> None:
        nonlocal last_printed
        logs = snapshot.capture_logs
        # Entries are immutable and carried over between snapshots, so the last one
        # printed marks where the new ones begin
        start = 0
        for i in range(len(logs) - 1, -1, -1):
            if logs[i] is last_printed:
                start = i + 1
                break
        for entry in logs[start:]:
            print_log_entry(console, entry)
        if logs:
            last_printed = logs[-1]

    pipeline = create_default_pipeline(overrides)
    unsubscribe = pipeline.store.subscribe(on_snapshot)
    try:
        await pipeline.activate()
    except AcquisitionError as e:
        console.print(f"[bold red]Could not start capture:[/bold red] {escape(str(e))}")
        unsubscribe()
        return 1

    console.print("[bold]Capturing.[/bold] Press Ctrl+C to stop.")
    try:
        if duration:
            await asyncio.sleep(duration)
        else:
            while True:
                await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        console.print("[bold]Stopping, waiting for pending jobs...[/bold]")
        await pipeline.close()
        unsubscribe()

    print_summary(console, pipeline.store.snapshot)
    return 0


def main(argv=None) -> int:
    """Entry point for the interview-capture command."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Capture a technical presentation: screen changes, screen text and speech",
        prog="interview-capture"
    )
    parser.add_argument(
        "--duration",
        type=float,
        help="Seconds to capture before stopping (default: until Ctrl+C)"
    )
    parser.add_argument(
        "--interval-ms",
        type=int,
        help="Milliseconds between screen samples (default: from config, 5000)"
    )
    parser.add_argument(
        "--segment-ms",
        type=int,
        help="Length of one transcription segment in milliseconds (default: from config, 10000)"
    )
    parser.add_argument(
        "--no-continuous",
        action="store_true",
        help="Transcribe the whole recording once on stop instead of in segments"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Log level (DEBUG, INFO, WARNING, ...)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file"
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio input devices and exit"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_file)
    console = Console()

    if args.list_devices:
        print_devices(console)
        return 0

    overrides = {
        "sample_interval_ms": args.interval_ms,
        "segment_duration_ms": args.segment_ms,
        "continuous": False if args.no_continuous else None,
    }
    try:
        return asyncio.run(run_capture(args.duration, overrides, console))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except ValueError as e:
        console.print(f"[bold red]Invalid configuration:[/bold red] {escape(str(e))}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
