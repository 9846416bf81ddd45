import argparse
import asyncio
import signal
import sys
from datetime import datetime
from pathlib import Path

from loguru import logger

from harvester.config import Settings
from harvester.events import EventSink, JobOutcome, Progress
from harvester.folders import open_folder
from harvester.history import HistoryStore
from harvester.orchestrator import Job, ScrapeOrchestrator
from harvester.queue import QueueManager


class ConsoleEvents(EventSink):
    """Prints the user-facing events; everything else stays in the log."""

    def log(self, message: str):
        print(message, flush=True)

    def progress(self, progress: Progress):
        print(f"  saved={progress.saved} skipped={progress.skipped} seen={progress.total_seen}", flush=True)

    def done(self, outcome: JobOutcome):
        folder = f" -> {outcome.folder_path}" if outcome.folder_path else ""
        print(f"[{outcome.status.value}]{folder}", flush=True)


def parse_args(argv=None):
    p = argparse.ArgumentParser(prog="harvester", description="Queued image harvester")
    p.add_argument("--downloads-dir", type=Path, default=None, help="Root folder for per-request folders")
    p.add_argument("--history-file", type=Path, default=None, help="JSON file holding past requests")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Queue one job per input and process them in order")
    run.add_argument("inputs", nargs="+", help="URL or free-text query")
    run.add_argument("--loop", action="store_true", help="Keep scrolling and harvesting until Ctrl+C")
    run.add_argument("--show-browser", action="store_true", help="Launch a visible browser")
    run.add_argument("--storage-state", type=str, default=None,
                     help="Playwright storage_state json (for sites needing login)")

    hist = sub.add_parser("history", help="List or edit past requests")
    group = hist.add_mutually_exclusive_group()
    group.add_argument("--pin", metavar="URL", help="Toggle the pin of an entry")
    group.add_argument("--remove", metavar="URL", help="Delete an entry")

    op = sub.add_parser("open", help="Open a download folder in the file browser")
    op.add_argument("folder", nargs="?", type=Path, default=None)
    return p.parse_args(argv)


def build_settings(args) -> Settings:
    settings = Settings.from_env()
    if args.downloads_dir:
        settings.downloads_dir = args.downloads_dir
    if args.history_file:
        settings.history_file = args.history_file
    if getattr(args, "storage_state", None):
        settings.storage_state = args.storage_state
    return settings


def setup_logging(verbose: bool):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _install_interrupts(manager: QueueManager):
    # first Ctrl+C stops the running job, the second also drops the queue
    presses = {"n": 0}

    def on_sigint():
        presses["n"] += 1
        if presses["n"] == 1:
            print("Stopping current job (Ctrl+C again to clear the queue)...", flush=True)
            manager.stop_current()
        else:
            manager.clear_all()

    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, on_sigint)
    except NotImplementedError:
        # Windows event loops have no signal handlers; Ctrl+C aborts the process there
        pass


async def run_jobs(args, settings: Settings) -> int:
    events = ConsoleEvents()
    history = HistoryStore(settings.history_file, on_change=events.history)
    orchestrator = ScrapeOrchestrator(settings, history, events)
    manager = QueueManager(orchestrator, events)

    _install_interrupts(manager)
    for text in args.inputs:
        manager.submit(Job(target_input=text, loop_mode=args.loop, show_browser=args.show_browser))
    await manager.join()
    return 0


def show_history(args, settings: Settings) -> int:
    store = HistoryStore(settings.history_file)
    if args.pin:
        entries = store.toggle_pin(args.pin)
    elif args.remove:
        entries = store.remove(args.remove)
    else:
        entries = store.entries

    for e in entries:
        mark = "*" if e.pinned else " "
        when = datetime.fromtimestamp(e.date / 1000).strftime("%Y-%m-%d %H:%M")
        print(f"{mark} {when}  {e.url}  ->  {e.folder}")
    return 0


def cli(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    settings = build_settings(args)

    if args.command == "run":
        return asyncio.run(run_jobs(args, settings))
    if args.command == "history":
        return show_history(args, settings)
    if args.command == "open":
        target = args.folder or settings.downloads_dir
        return 0 if open_folder(target) else 1
    return 2


if __name__ == "__main__":
    sys.exit(cli())
