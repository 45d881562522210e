import sys

from wotkit.main import main

sys.exit(main())
