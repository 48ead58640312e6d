"""CLI entry point for depwatch.

Usage:
    python -m depwatch [options] [config_file]

Example:
    python -m depwatch --root index.html
    python -m depwatch --watch depwatch.yaml
"""

from .config.runner import main
import sys

if __name__ == '__main__':
    sys.exit(main())
