"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import TypeVar

from fastapi import Request

from chatcore.api.errors import map_error
from chatcore.core import ChatCore
from chatcore.domain.results import OpResult

T = TypeVar("T")


def get_core(request: Request) -> ChatCore:
	return request.app.state.core


def resolve(result: OpResult[T]) -> T:
	"""Return the result value or raise the mapped HTTPException."""
	if result.error is not None:
		raise map_error(result.error) from None
	return result.value  # type: ignore[return-value]
