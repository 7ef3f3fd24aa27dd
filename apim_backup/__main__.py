import sys

from apim_backup.cli import main

sys.exit(main())
