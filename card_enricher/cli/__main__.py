"""Allow ``python -m card_enricher.cli`` execution."""

import sys

from card_enricher.cli.run import main

sys.exit(main())
