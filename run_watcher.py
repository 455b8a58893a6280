#!/usr/bin/env python3
"""
run_watcher.py — start the watcher from a project checkout
Uses watcher_config.json in this directory. Run from project root.

  python run_watcher.py           # poll until Ctrl-C
  python run_watcher.py --once    # single scan
  python run_watcher.py --api     # poll + serve http://127.0.0.1:8766

Any other watcher CLI flag is passed through.
"""

import sys
from pathlib import Path


def main():
    root = Path(__file__).parent
    sys.path.insert(0, str(root))

    from watcher.cli import main as cli_main

    argv = sys.argv[1:]
    if '--config-dir' not in argv and '-c' not in argv:
        argv = ['--config-dir', str(root)] + argv
    sys.exit(cli_main(argv))


if __name__ == "__main__":
    main()
