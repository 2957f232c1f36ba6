"""Entry point for running docaudit as a module.

Usage:
    python -m docaudit check .
    python -m docaudit stale . --format json
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
