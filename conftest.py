"""Root conftest, loaded before any test module imports daylog.cli."""

import os

# Rich reads these when Console() is created at import time. With colour
# forced on, `daylog ... --json` output picks up ANSI codes and stops
# parsing as JSON.
os.environ.pop("FORCE_COLOR", None)
os.environ["NO_COLOR"] = "1"
