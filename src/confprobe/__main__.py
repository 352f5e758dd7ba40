"""Allow `python -m confprobe`."""

import sys

from confprobe.cli import main

sys.exit(main())
