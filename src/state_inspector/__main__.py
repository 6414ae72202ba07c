"""Allow ``python -m state_inspector``."""

import sys

from state_inspector.cli.main import main

sys.exit(main())
