import sys

from edgar_trim.cli import main

sys.exit(main())
