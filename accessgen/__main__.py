# File: accessgen/__main__.py
"""
accessgen - Module entry point.

Allows running the generator directly via::

    python -m accessgen -c accessgen.yaml -o db_access.py --conn '$DATABASE_URL'

This module simply delegates to the CLI entry point defined in ``accessgen.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from accessgen.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
