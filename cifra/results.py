"""
Result normalization for front ends.

Every core call made on behalf of a front end goes through :func:`capture`,
which turns the outcome into ``Ok(payload)`` or ``Error(kind, message)``.
Front ends never see an exception from the core.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from pathlib import PurePath
from typing import Any, Callable, ClassVar, Optional, Union

from cifra.algo import CifraError, IOFailure

log = logging.getLogger(__name__)

INTERNAL_ERROR = "InternalError"


@dataclass(frozen=True)
class Ok:
    payload: Any = None
    ok: ClassVar[bool] = True

    def to_dict(self) -> dict:
        return {"data": to_jsonable(self.payload)}


@dataclass(frozen=True)
class Error:
    kind: str
    message: str
    block_index: Optional[int] = None
    ok: ClassVar[bool] = False

    def to_dict(self) -> dict:
        error = {"kind": self.kind, "message": self.message}
        if self.block_index is not None:
            error["block_index"] = self.block_index
        return {"error": error}


Result = Union[Ok, Error]


def from_exception(exc: BaseException) -> Error:
    """Map an exception raised by the core onto an :class:`Error`."""
    if isinstance(exc, CifraError):
        return Error(kind=exc.kind, message=str(exc), block_index=exc.block_index)
    if isinstance(exc, OSError):
        return Error(kind=IOFailure.kind, message=str(exc))
    return Error(kind=INTERNAL_ERROR, message=f"Unexpected error: {exc}")


def capture(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Result:
    """Call *fn* and wrap its return value or exception in a result."""
    try:
        return Ok(fn(*args, **kwargs))
    except (CifraError, OSError) as exc:
        log.debug("%s failed: %s", getattr(fn, "__name__", fn), exc)
        return from_exception(exc)
    except Exception as exc:
        log.exception("unexpected error in %s", getattr(fn, "__name__", fn))
        return from_exception(exc)


def to_jsonable(value: Any) -> Any:
    """Convert payloads (dataclasses, paths, enums, results) to JSON types."""
    if isinstance(value, (Ok, Error)):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value
