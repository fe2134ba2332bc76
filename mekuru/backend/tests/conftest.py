import os
import sys
import tempfile
from pathlib import Path

_tests_dir = Path(__file__).resolve().parent

# app.py reads these at import time
os.environ["DATA_DIR"] = str(_tests_dir / "data")
os.environ["LOGS_DIR"] = tempfile.mkdtemp(prefix="mekuru-logs-")
os.environ["USE_DATABASE"] = "false"

sys.path.insert(0, str(_tests_dir.parent))
