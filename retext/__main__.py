"""Main entry point for retext package.

This module allows the package to be executed as:
    python -m retext [args...]
"""

from .cli import main

if __name__ == "__main__":
    main()
