"""Allow `python -m bucketstore`."""

import sys

from bucketstore.cli import main

sys.exit(main())
