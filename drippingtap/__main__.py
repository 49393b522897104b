"""Module entrypoint for ``python -m drippingtap``."""

from __future__ import annotations

from drippingtap.cli import main

if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
