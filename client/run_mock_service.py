"""Run the mock inference service (dev helper)."""
from __future__ import annotations

import uvicorn

from posefeed.core.config import get_settings
from posefeed.core.logging_config import setup_logging


def main() -> None:
    s = get_settings()
    setup_logging(s.log_level)
    uvicorn.run("posefeed.mock.service:app", host=s.api_host, port=s.api_port, reload=True)


if __name__ == "__main__":
    main()
