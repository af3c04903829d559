"""Allow running the CLI with `python -m restrec`."""

import sys

from restrec.cli import main

sys.exit(main())
