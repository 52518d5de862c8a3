import sys

from storylinker.cli import main

sys.exit(main())
