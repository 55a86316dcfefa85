import sys

from plangen.codegen import main

sys.exit(main())
