"""Entry point for `python -m notios`."""

import sys

from notios.cli import main

if __name__ == "__main__":
    sys.exit(main())
