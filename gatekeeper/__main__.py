"""Gatekeeper entrypoint.

Run with:
  python -m gatekeeper
"""

import uvicorn

from gatekeeper.config import settings


def main() -> None:
    kwargs = {}
    if settings.ssl_cert:
        kwargs = {"ssl_certfile": settings.ssl_cert, "ssl_keyfile": settings.ssl_key or None}
    uvicorn.run("gatekeeper.main:app", host=settings.host, port=settings.port, **kwargs)


if __name__ == "__main__":
    main()
