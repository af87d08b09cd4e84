"""!
@brief ``python -m office_remover`` entry point.
"""
from __future__ import annotations

import sys

from .main import main

sys.exit(main())
