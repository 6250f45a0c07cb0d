"""
Module entrypoint for `python -m buzen`.
Delegates to the CLI main in buzen.cli.
"""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
