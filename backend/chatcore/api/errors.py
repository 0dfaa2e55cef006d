"""Map core errors to HTTP responses and install JSON error handlers."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatcore.domain.errors import CoreError, InvalidCredential, StorageError
from chatcore.obs import logging as obs_logging

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
	"not_found": status.HTTP_404_NOT_FOUND,
	"unauthorized": status.HTTP_403_FORBIDDEN,
	"conflict": status.HTTP_409_CONFLICT,
	"invalid_state": status.HTTP_409_CONFLICT,
	"invalid_input": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def map_error(exc: CoreError) -> HTTPException:
	if isinstance(exc, InvalidCredential):
		return HTTPException(status.HTTP_401_UNAUTHORIZED, detail=exc.reason)
	code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
	return HTTPException(code, detail=exc.reason)


def get_request_id(request: Request) -> str:
	rid = getattr(request.state, "request_id", None)
	return rid or obs_logging.current_request_id()


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		rid = get_request_id(request)
		payload = {"detail": exc.detail, "request_id": rid}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		rid = get_request_id(request)
		payload = {"detail": "validation_error", "errors": jsonable_encoder(exc.errors()), "request_id": rid}
		return JSONResponse(status_code=422, content=payload)

	@app.exception_handler(CoreError)
	async def core_exc_handler(request: Request, exc: CoreError):  # type: ignore[override]
		mapped = map_error(exc)
		return JSONResponse(
			status_code=mapped.status_code,
			content={"detail": mapped.detail, "request_id": get_request_id(request)},
		)

	@app.exception_handler(StorageError)
	async def storage_exc_handler(request: Request, exc: StorageError):  # type: ignore[override]
		rid = get_request_id(request)
		logger.error("storage_unavailable", extra={"request_id": rid})
		return JSONResponse(status_code=503, content={"detail": "storage_unavailable", "request_id": rid})

	@app.exception_handler(Exception)
	async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
		rid = get_request_id(request)
		logger.exception("unhandled_error", extra={"request_id": rid})
		return JSONResponse(status_code=500, content={"detail": "internal_error", "request_id": rid})
