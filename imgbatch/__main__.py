import sys

from imgbatch.main import main

sys.exit(main())
