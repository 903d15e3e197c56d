"""Logging and metrics wiring for the HTTP app."""

from __future__ import annotations

from fastapi import FastAPI

from botwatch.obs import logging as obs_logging
from botwatch.obs import middleware
from botwatch.settings import settings

_logging_configured = False


def init(app: FastAPI) -> None:
	"""Install request instrumentation on ``app``; root logging is configured once per process."""

	global _logging_configured
	if not settings.obs_enabled:
		return
	middleware.install(app)
	if not _logging_configured:
		obs_logging.configure_logging()
		_logging_configured = True


__all__ = ["init"]
