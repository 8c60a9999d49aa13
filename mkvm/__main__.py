import sys

from mkvm import cli

sys.exit(cli.main())
