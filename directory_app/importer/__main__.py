import sys

from directory_app.importer.cli import main

sys.exit(main())
