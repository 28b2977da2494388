"""Entry point for ``python -m ftlcatalog``."""

import sys

from .cli import main

sys.exit(main())
