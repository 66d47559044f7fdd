"""
Result Pattern Implementation
Repository, storage and workflow operations report failures as values
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar('T')


class Result(BaseModel, Generic[T]):
    """Outcome of an operation: ``data`` when ``success``, otherwise ``error``"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T = None) -> 'Result[T]':
        return cls(success=True, data=data)

    @classmethod
    def err(cls, error: str) -> 'Result[T]':
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Return ``data``, raising ``ValueError`` with the error message on failure"""
        if not self.success:
            raise ValueError(f"Result unwrap failed: {self.error}")
        return self.data
