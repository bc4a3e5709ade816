import sys

from scope_dump.cli import main

sys.exit(main())
