# backend/dvirdb/serve.py
"""
Process entrypoint: `python -m dvirdb.serve`.

Configures root logging once, then hands over to uvicorn. Inspection
creation serializes per vehicle inside the process, so WORKERS > 1 relies
on the database row lock alone for cross-process ordering.
"""

import logging
import os
from typing import Dict

import uvicorn

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _tls_options() -> Dict[str, str]:
    options: Dict[str, str] = {}
    certfile = os.getenv("SSL_CERTFILE")
    keyfile = os.getenv("SSL_KEYFILE")
    if certfile:
        options["ssl_certfile"] = certfile
    if keyfile:
        options["ssl_keyfile"] = keyfile
    return options


def main() -> None:
    log_level = os.getenv("LOG_LEVEL", "info")
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)

    reload_enabled = _truthy(os.getenv("RELOAD", "false"))
    workers = 1 if reload_enabled else int(os.getenv("WORKERS", "1"))

    uvicorn.run(
        "dvirdb.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=reload_enabled,
        workers=workers,
        log_level=log_level,
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
        **_tls_options(),
    )


if __name__ == "__main__":
    main()
