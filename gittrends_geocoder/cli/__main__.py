"""Allow ``python -m gittrends_geocoder.cli`` execution."""

import sys

from gittrends_geocoder.cli.commands import main

sys.exit(main())
