"""Allow ``python -m pve_installer``."""

import sys

from pve_installer import cli

if __name__ == "__main__":
    sys.exit(cli.main())
