"""Allow ``python -m facdir``."""

import sys

from facdir.cli import main

sys.exit(main())
