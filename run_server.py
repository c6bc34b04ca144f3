import os

import uvicorn

from skycheck.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def warn_missing_credentials() -> None:
    """
    Log a clear warning when the weather provider credentials are unset.
    The server still starts; dashboard requests will fail with 502 until
    SKYCHECK_METEOMATICS_USERNAME / SKYCHECK_METEOMATICS_PASSWORD are set.
    """
    if not settings.meteomatics_username or not settings.meteomatics_password:
        logger.warning("Meteomatics credentials missing; set SKYCHECK_METEOMATICS_USERNAME and SKYCHECK_METEOMATICS_PASSWORD.")


if __name__ == "__main__":
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="skycheck")
    warn_missing_credentials()

    uvicorn.run(
        "skycheck.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
