"""ASGI entry point: ``uvicorn surf_report.main:app``."""

from surf_report import create_app

app = create_app()
