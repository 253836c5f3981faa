from __future__ import annotations

import sys
from pathlib import Path


# Unit tests never connect; they only need the package and the shared sample records importable.
REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))
