import sys

from mtxfs.cli import main

sys.exit(main())
