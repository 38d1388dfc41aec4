"""Allow ``python -m calendar_client``."""

import sys

from .cli import main


sys.exit(main())
