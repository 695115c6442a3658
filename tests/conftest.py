import sys
import os
from pathlib import Path

# Ensure project root is on sys.path for `import model_eval.*`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Default: built-in suites only, no extra benchmark directory, no retry backoff
os.environ.setdefault("EVAL_BUILTIN_BENCHMARKS", "1")
os.environ.pop("EVAL_BENCHMARKS_DIR", None)
os.environ.setdefault("EVAL_RETRY_BACKOFF_MS", "0")
