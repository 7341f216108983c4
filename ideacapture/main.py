"""Main application entry point for IdeaCapture."""

import sys
import argparse
import logging
from pathlib import Path
from typing import Optional

from ideacapture.services.recorder_service import RecorderService
from ideacapture.storage.history_store import HistoryStore
from ideacapture.transcription.scripted import ScriptedRecognizer, load_script
from ideacapture.ui.history_screen import HistoryScreen

from .config import IdeaCaptureConfig

logger = logging.getLogger(__name__)


class App:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = IdeaCaptureConfig(config_path)
        # Set up logging (command line overrides config)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.screen = HistoryScreen()

    def open_store(self) -> HistoryStore:
        store = HistoryStore(
            self.config.get_history_path(),
            incremental_writes=self.config.get_incremental_writes(),
        )
        store.load()
        return store

    def replay(self, script_path: str, interval: float, final_on_stop: bool,
               external_request: bool, max_duration: float) -> int:
        """Run one session fed by a recorded hypothesis script."""
        recognizer = ScriptedRecognizer(load_script(script_path),
                                        interval_seconds=interval,
                                        final_on_stop=final_on_stop)
        service = RecorderService(self.config, recognizer)
        service.start()
        try:
            result = service.start_session(external_request=external_request)
            if not result["success"]:
                self.screen.render_session_result(result)
                return 1

            if not recognizer.played.wait(max_duration):
                logger.warning(f"Script still playing after {max_duration}s, stopping")
            service.request_stop()

            if not service.wait_until_idle(service.final_timeout_seconds + 5.0):
                logger.error("Session did not complete")
                self.screen.render_session_result({"success": False, "error": "Session did not complete"})
                return 1

            self.screen.render_session_result(result)
            self.screen.render(service.history, service.unread_count)
            return 0
        finally:
            service.shutdown()

    def show_history(self) -> int:
        store = self.open_store()
        self.screen.render(store.entries, store.unread_count)
        return 0

    def mark_read(self, entry_id: Optional[str], mark_all: bool, unread: bool = False) -> int:
        store = self.open_store()
        if mark_all:
            changed = store.mark_all_read()
            self.screen.console.print(f"Marked {changed} entries as read", style="green")
            return 0
        if not entry_id:
            self.screen.console.print("Give an entry id or --all", style="bold red")
            return 2
        if store.get(entry_id) is None:
            self.screen.console.print(f"No entry with id {entry_id}", style="bold red")
            return 1
        if unread:
            store.mark_unread(entry_id)
        else:
            store.mark_read(entry_id)
        return 0

    def delete(self, entry_id: str) -> int:
        store = self.open_store()
        if not store.delete(entry_id):
            self.screen.console.print(f"No entry with id {entry_id}", style="bold red")
            return 1
        self.screen.console.print(f"Deleted {entry_id}", style="green")
        return 0


def setup_logging(config: IdeaCaptureConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/ideacapture.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("IdeaCapture starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="IdeaCapture - reconcile speech recognition results into a transcript history",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="IdeaCapture v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser("replay", help="Replay a recorded hypothesis script as one session")
    replay.add_argument("script", help="JSON lines file of hypothesis steps")
    replay.add_argument("--interval", type=float, default=0.0,
                        help="Seconds between hypotheses (default: 0)")
    replay.add_argument("--no-final", action="store_true",
                        help="Recognizer sends no final result on stop, so the final timeout ends the session")
    replay.add_argument("--external", action="store_true",
                        help="Mark the session as started by an external request")
    replay.add_argument("--max-duration", type=float, default=60.0,
                        help="Stop the session after this many seconds (default: 60)")

    subparsers.add_parser("history", help="Show the transcript history")

    mark_read = subparsers.add_parser("mark-read", help="Mark history entries as read")
    mark_read.add_argument("entry_id", nargs="?", help="Entry id")
    mark_read.add_argument("--all", action="store_true", help="Mark every entry as read")
    mark_read.add_argument("--unread", action="store_true", help="Mark the entry as unread again")

    delete = subparsers.add_parser("delete", help="Delete a history entry")
    delete.add_argument("entry_id", help="Entry id")

    return parser


def main(argv: Optional[list] = None) -> None:
    """Main entry point for IdeaCapture application."""
    args = build_parser().parse_args(argv)

    try:
        app = App(args.config, args.log_level)
        if args.command == "replay":
            code = app.replay(args.script, args.interval, not args.no_final,
                              args.external, args.max_duration)
        elif args.command == "history":
            code = app.show_history()
        elif args.command == "mark-read":
            code = app.mark_read(args.entry_id, args.all, args.unread)
        else:
            code = app.delete(args.entry_id)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        code = 130
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
