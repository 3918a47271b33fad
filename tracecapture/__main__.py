import sys

from tracecapture.cli.main import main

sys.exit(main())
