"""Run the fileshare API with uvicorn: ``python -m fileshare``."""

from __future__ import annotations

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "fileshare.main:create_app_from_env",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "5000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
