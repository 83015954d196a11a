import sys

from storefront_qa.cli import main

sys.exit(main())
