#!/usr/bin/env python3
"""CLI entry point for the refindex command.

Validates and enriches references against bibliographic indexes.
"""

import sys


def main() -> None:
    """Entry point for refindex command."""
    from refindex.enricher import main as enricher_main

    sys.exit(enricher_main())


if __name__ == "__main__":
    main()
