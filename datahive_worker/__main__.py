import sys

from datahive_worker.cli import main

sys.exit(main())
