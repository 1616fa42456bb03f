"""Allow ``python -m portainer_backup``."""

import sys

from portainer_backup.cli import main

sys.exit(main())
