"""
watcher/cli.py
Command-line interface for iMessage Watcher (macOS).

USAGE:
  python -m watcher.cli                       # poll until Ctrl-C
  python -m watcher.cli --once                # one scan, then exit
  python -m watcher.cli --reprocess 5         # rescan the last 5 contact messages
  python -m watcher.cli --baseline            # skip everything unprocessed
  python -m watcher.cli --status
  python -m watcher.cli --list-models
  python -m watcher.cli --list-calendars

Settings live in watcher_config.json (see watcher/config.py for keys).
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from watcher.config import ensure_config
from watcher.errors import SinkError
from watcher.orchestrator import STORE_UNAVAILABLE, ScanOrchestrator
from watcher.poller import Poller

logger = logging.getLogger(__name__)

# ANSI colors
GREEN  = '\033[92m'
YELLOW = '\033[93m'
RED    = '\033[91m'
CYAN   = '\033[96m'
RESET  = '\033[0m'
BOLD   = '\033[1m'

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog        = 'watcher',
        description = 'iMessage Watcher — turns one contact\'s messages into events and reminders',
        formatter_class = argparse.RawDescriptionHelpFormatter,
        epilog = """
PERMISSIONS:
  Reading chat.db needs Full Disk Access for the terminal running this.
  Calendar / Reminders sinks need Automation access (prompted by macOS).
  All classification runs on the local Ollama — messages never leave the machine
  (ntfy push sends only the action titles, and only when enabled).
        """
    )
    parser.add_argument(
        '--config-dir', '-c',
        type    = Path,
        default = None,
        help    = 'Directory holding watcher_config.json (default: current directory)',
    )
    parser.add_argument(
        '--once',
        action  = 'store_true',
        help    = 'Run a single scan and exit',
    )
    parser.add_argument(
        '--reprocess',
        type    = int,
        metavar = 'N',
        help    = 'Rewind over the last N contact messages and rescan them',
    )
    parser.add_argument(
        '--baseline',
        action  = 'store_true',
        help    = 'Set the cursor to the newest message without processing anything',
    )
    parser.add_argument(
        '--status',
        action  = 'store_true',
        help    = 'Print scanner status as JSON and exit',
    )
    parser.add_argument(
        '--list-models',
        action  = 'store_true',
        help    = 'List locally available Ollama models and exit',
    )
    parser.add_argument(
        '--list-calendars',
        action  = 'store_true',
        help    = 'List writable Calendar.app calendars (values for calendar_id) and exit',
    )
    parser.add_argument(
        '--api',
        action  = 'store_true',
        help    = 'Serve the local status/control API while polling',
    )
    parser.add_argument(
        '--port',
        type    = int,
        default = 8766,
        help    = 'API port when --api is given (default: 8766)',
    )
    parser.add_argument(
        '--log-file',
        type    = Path,
        default = None,
        help    = 'Also append log lines to this file',
    )
    parser.add_argument(
        '--verbose', '-v',
        action  = 'store_true',
        help    = 'Enable debug logging (includes prompts and raw LLM replies)',
    )
    return parser


def setup_logging(verbose: bool, log_file: Path = None) -> None:
    logging.basicConfig(
        level   = logging.DEBUG if verbose else logging.INFO,
        format  = LOG_FORMAT,
        datefmt = '%H:%M:%S',
    )
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding='utf-8')
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logging.getLogger().addHandler(handler)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    config       = ensure_config(args.config_dir)
    orchestrator = ScanOrchestrator.from_config(config)

    # ── LIST MODELS ──────────────────────────────────────────
    if args.list_models:
        models = orchestrator.classifier.llm.list_available_models()
        if models:
            _print(f"\n{BOLD}Available Ollama models:{RESET}")
            for m in models:
                marker = f" {GREEN}(configured){RESET}" if m == config.ollama_model else ''
                _print(f"  • {m}{marker}")
        else:
            _print(f"{YELLOW}No models found. Is Ollama running?{RESET}")
        return 0

    # ── LIST CALENDARS ───────────────────────────────────────
    if args.list_calendars:
        try:
            calendars = orchestrator.dispatcher.calendar.writable_calendars()
        except SinkError as e:
            _print(f"{RED}Cannot read calendars: {e}{RESET}")
            return 1
        _print(f"\n{BOLD}Writable calendars:{RESET}")
        for name in calendars:
            _print(f"  • {name}")
        return 0

    orchestrator.subscribe(_on_event)
    orchestrator.start()

    # ── ONE-SHOT COMMANDS ────────────────────────────────────
    if args.status:
        from watcher.api import WatcherAPI
        _print(json.dumps(WatcherAPI(orchestrator).get_status(), indent=2))
        return 0

    if args.baseline:
        cursor = orchestrator.reset_baseline()
        if cursor is None:
            return 1
        _ok(f"Cursor set to ROWID {cursor}")
        return 0

    if not config.has_contact:
        _print(f"{RED}Error: contact_phone is not set in watcher_config.json (10 digits){RESET}")
        return 1

    if args.reprocess is not None:
        if args.reprocess < 1:
            _print(f"{RED}Error: --reprocess needs a positive count{RESET}")
            return 1
        if not orchestrator.rewind(args.reprocess):
            _print(f"{YELLOW}Nothing to reprocess{RESET}")
        _summary(orchestrator)
        return 0

    if args.once:
        orchestrator.scan('manual')
        _summary(orchestrator)
        return 0

    # ── DAEMON ───────────────────────────────────────────────
    _step(f"Watching {CYAN}{config.contact_phone}{RESET} every {int(config.poll_interval)}s "
          f"with {CYAN}{config.ollama_model}{RESET}")
    poller = Poller(orchestrator)
    poller.start()
    try:
        if args.api:
            from watcher.api import serve
            serve(orchestrator, port=args.port)
        else:
            while True:
                time.sleep(3600)
    except KeyboardInterrupt:
        _print("")
    finally:
        poller.stop(timeout=5)
    _ok("Stopped")
    return 0


# ── EVENT + PRINT HELPERS ────────────────────────────────────

def _on_event(event: str, payload: dict) -> None:
    if event == STORE_UNAVAILABLE:
        _print(
            f"\n{YELLOW}⚠ Cannot read {payload.get('db_path')}.{RESET}\n"
            "  Grant Full Disk Access to this terminal in System Settings →\n"
            "  Privacy & Security → Full Disk Access, then restart.\n"
        )


def _summary(orchestrator: ScanOrchestrator) -> None:
    result = orchestrator.last_result
    if result is None:
        return
    _step(f"Scan: {result.status} — {result.new_messages} new message(s), "
          f"{result.items} item(s), cursor {result.cursor_before} → {result.cursor_after}")
    for action in result.actions:
        _ok(action)


def _step(msg):  _print(f"  {CYAN}→{RESET} {msg}")
def _ok(msg):    _print(f"  {GREEN}✓{RESET} {msg}")
def _print(msg): print(msg)


if __name__ == '__main__':
    sys.exit(main())
