"""Typed success/failure results returned by every core operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from chatcore.domain.errors import CoreError

T = TypeVar("T")


@dataclass(frozen=True)
class OpResult(Generic[T]):
	value: Optional[T] = None
	error: Optional[CoreError] = None

	@property
	def ok(self) -> bool:
		return self.error is None

	@classmethod
	def success(cls, value: T) -> "OpResult[T]":
		return cls(value=value)

	@classmethod
	def failure(cls, error: CoreError) -> "OpResult[T]":
		return cls(error=error)

	def unwrap(self) -> T:
		if self.error is not None:
			raise self.error
		return self.value  # type: ignore[return-value]
