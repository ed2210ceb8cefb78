"""Allow ``python -m cs2_log_storage``."""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
