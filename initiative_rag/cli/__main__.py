"""Allow ``python -m initiative_rag.cli`` execution."""

import sys

from initiative_rag.cli.reindex import main

sys.exit(main())
