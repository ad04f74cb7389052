"""
Finance Tracker server entrypoint.

Run with:
    python -m app.main
or:
    uvicorn app.main:app --port 3000

Configuration comes from the environment / .env (see
finance_tracker.config). Set DATABASE_URL=memory:// for a throwaway
ledger that is seeded with the default accounts and categories.
"""

import structlog
import uvicorn

from finance_tracker.api import create_app
from finance_tracker.config import get_settings, validate_all_settings


logger = structlog.get_logger(__name__)

app = create_app()


def main() -> None:
    status = validate_all_settings()
    failures = {k: v for k, v in status.items() if k.endswith("_error")}
    if failures:
        for name, error in failures.items():
            logger.error("invalid_settings", setting=name.removesuffix("_error"), error=error)
        raise SystemExit(1)

    settings = get_settings().app
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
