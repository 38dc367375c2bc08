#!/usr/bin/env python3
"""Serve the bucket file manager.

Uses gevent's WSGI server when gevent is installed; otherwise falls back to
the Flask development server.
"""

GEVENT_AVAILABLE = True
try:
    from gevent import pywsgi
except ImportError:
    GEVENT_AVAILABLE = False
    pywsgi = None  # type: ignore

from app import create_app
from services.logging_setup import core_log as _core_log
from services.settings import Settings


def main() -> None:
    settings = Settings.from_env()
    application = create_app(settings)
    _core_log("info", "server.start", host=settings.host, port=settings.port, gevent=GEVENT_AVAILABLE)
    if GEVENT_AVAILABLE:
        server = pywsgi.WSGIServer((settings.host, settings.port), application)
        server.serve_forever()
    else:
        application.run(host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
