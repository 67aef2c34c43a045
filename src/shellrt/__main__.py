import sys

from shellrt.bootstrap import main


sys.exit(main())
