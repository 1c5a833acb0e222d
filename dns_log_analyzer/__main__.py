import sys

from dns_log_analyzer.cli import main

sys.exit(main())
