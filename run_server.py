#!/usr/bin/env python3
"""
Start the 1auth intent signer.

Reads ONEAUTH_DEVELOPER_ID and ONEAUTH_DEVELOPER_PRIVATE_KEY (or a .env file)
and serves POST /api/sign-intent.
"""

import os
import sys
import logging
import uvicorn


def check_environment():
    """Warn early when the developer credentials are missing"""
    missing = [
        name for name in ("ONEAUTH_DEVELOPER_ID", "ONEAUTH_DEVELOPER_PRIVATE_KEY")
        if not os.getenv(name)
    ]
    if missing:
        logging.getLogger("oneauth").warning(
            f"Missing {', '.join(missing)}; /api/sign-intent will answer 500"
        )


def configure_logging(level: str = "DEBUG"):
    """Configure root and app loggers to emit to stdout with formatting."""
    log_level = getattr(logging, level.upper(), logging.DEBUG)
    formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid duplicate handlers on reload
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(formatter)
        root.addHandler(sh)

    logging.getLogger("oneauth").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)


def main():
    """Start the signer"""
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    check_environment()

    port = int(os.getenv("PORT", "8000"))
    print(f"Intent signer listening on http://localhost:{port}/api/sign-intent")

    uvicorn.run(
        "oneauth.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("RELOAD", "").lower() in ("1", "true"),
        log_level=os.getenv("UVICORN_LOG_LEVEL", "info"),
    )

if __name__ == "__main__":
    main()
