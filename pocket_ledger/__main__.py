"""Module entry point for running the CLI via ``python -m pocket_ledger``."""

from .cli import main


if __name__ == "__main__":  # pragma: no cover - manual execution entry
    main()
