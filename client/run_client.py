"""Run the pose feedback client against SERVICE_URL (dev helper)."""
from __future__ import annotations

from posefeed.gui.mirror import main

if __name__ == "__main__":
    raise SystemExit(main())
