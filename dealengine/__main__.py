"""Allow running as ``python -m dealengine``."""

import sys

from dealengine.main import main

sys.exit(main())
