import sys

from release_lock.server import main

sys.exit(main())
