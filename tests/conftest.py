"""Pytest setup for the travel-intent and location refinement tests."""
from __future__ import annotations

import sys
from pathlib import Path

# `import src` must resolve to this checkout even without an editable install.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
