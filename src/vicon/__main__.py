"""vicon CLI entry point."""

from __future__ import annotations

from vicon.cli.app import main

if __name__ == "__main__":
    main()
