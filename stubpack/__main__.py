import sys

from stubpack.cli import main

sys.exit(main())
