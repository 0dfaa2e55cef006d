"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import socketio
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from chatcore.api import ROUTERS
from chatcore.api.errors import install_error_handlers
from chatcore.core import ChatCore
from chatcore.obs import init as obs_init
from chatcore.settings import settings
from chatcore.sockets import ChatNamespace


def _allowed_origins() -> list[str]:
	allow_origins = list(settings.cors_allow_origins)
	if not allow_origins:
		allow_origins = ["http://localhost:3000"] if settings.is_dev() else []
	# Starlette disallows wildcard '*' with allow_credentials=True.
	if "*" in allow_origins:
		allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []
	return allow_origins


def create_app(core: Optional[ChatCore] = None) -> FastAPI:
	"""Build the API. A prebuilt ``core`` is started and closed with the app."""
	namespace = ChatNamespace()

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		chat_core = core or await ChatCore.from_settings(settings)
		unsubscribe = chat_core.bus.subscribe(namespace.deliver)
		await chat_core.start()
		app.state.core = chat_core
		try:
			yield
		finally:
			unsubscribe()
			await chat_core.close()

	app = FastAPI(title="Chat Core", lifespan=lifespan)
	install_error_handlers(app)
	allow_origins = _allowed_origins()
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allow_origins,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	obs_init(app)

	for router in ROUTERS:
		app.include_router(router)

	@app.get("/health/live", tags=["ops"])
	async def live() -> dict:
		return {"status": "ok", "service": settings.service_name, "commit": settings.git_commit}

	@app.get("/metrics", tags=["ops"], include_in_schema=False)
	async def metrics() -> Response:
		return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

	sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
	sio.register_namespace(namespace)
	app.state.sio = sio
	app.state.socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
	return app


app = create_app()
socket_app = app.state.socket_app
