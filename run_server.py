#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
    Gunicorn:     python run_server.py --gunicorn

Host and port default to API_HOST / API_PORT.
"""

import argparse
import os
import subprocess

from salespulse.config import get_settings

APP = "salespulse.main:app"


def run_dev_server(host: str, port: int):
    """Auto-reloading server over the salespulse package."""
    import uvicorn

    uvicorn.run(APP, host=host, port=port, reload=True, reload_dirs=["salespulse"], log_level="debug")


def run_prod_server(host: str, port: int):
    """Uvicorn workers without Gunicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        APP,
        host=host,
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=settings.monitoring.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn(host: str, port: int):
    subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py", "--bind", f"{host}:{port}"], check=True)


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="SalesPulse API Server")
    parser.add_argument("--dev", action="store_true", help="Development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run under Gunicorn")
    parser.add_argument("--host", default=settings.api_host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to bind")
    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.host, args.port)
    elif args.gunicorn:
        run_gunicorn(args.host, args.port)
    else:
        run_prod_server(args.host, args.port)


if __name__ == "__main__":
    main()
