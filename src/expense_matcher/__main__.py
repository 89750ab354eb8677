import sys

from expense_matcher.runner import main

sys.exit(main())
