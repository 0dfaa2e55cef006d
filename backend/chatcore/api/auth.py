"""Session surface: register, login, logout and the current profile."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from chatcore.api.deps import get_core, resolve
from chatcore.core import ChatCore
from chatcore.domain.identity import schemas
from chatcore.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/auth", tags=["identity"])


@router.post("/register", response_model=schemas.SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(
	payload: schemas.RegisterRequest,
	core: ChatCore = Depends(get_core),
) -> schemas.SessionResponse:
	profile = resolve(await core.identity.register(payload.name, payload.email, payload.password, payload.image))
	return schemas.SessionResponse(token=core.identity.issue_session(profile.id), user=profile)


@router.post("/login", response_model=schemas.SessionResponse)
async def login(
	payload: schemas.LoginRequest,
	core: ChatCore = Depends(get_core),
) -> schemas.SessionResponse:
	profile = resolve(await core.identity.authenticate(payload.email, payload.password))
	return schemas.SessionResponse(token=core.identity.issue_session(profile.id), user=profile)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(auth_user: AuthenticatedUser = Depends(get_current_user)) -> Response:
	"""Tokens are stateless; the client drops its copy."""
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=schemas.UserProfile)
async def me(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> schemas.UserProfile:
	return resolve(await core.identity.require(auth_user.id))
