"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from chatcore.obs import logging as obs_logging
from chatcore.obs import middleware
from chatcore.settings import settings

_logging_configured = False


def init(app: FastAPI) -> None:
	global _logging_configured
	if settings.obs_enabled and not _logging_configured:
		obs_logging.configure_logging()
		_logging_configured = True
	middleware.install(app, enabled=settings.obs_enabled)


__all__ = ["init"]
