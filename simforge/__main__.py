import sys

from simforge.cli import main

sys.exit(main())
