"""Allow ``python -m waffle``."""

import sys

from waffle.cli import main

sys.exit(main())
