import sys

from service_template.server import main

sys.exit(main())
