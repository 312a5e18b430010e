import sys

from drivezip.main import main

sys.exit(main())
