"""Run the API with uvicorn: ``python -m abaya_bank`` or ``abaya-bank``"""

import uvicorn

from abaya_bank.config import settings


def main() -> None:
    uvicorn.run(
        "abaya_bank.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
