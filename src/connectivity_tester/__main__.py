"""Main entry point for ``python -m connectivity_tester``."""

from .cli import main


if __name__ == "__main__":
    main()
