import sys

from redmine_reporter.cli import main

sys.exit(main())
