"""
Error taxonomy shared by the teaching and learning contexts.

Why:
    Web adapters already map the built-in ValueError/LookupError/PermissionError
    families to 400/404/403. The domain errors subclass those built-ins so
    callers can stay coarse, while the adapters can still tell a gateway outage
    (502) from a bad request.

Convention:
    ``str(exc)`` is a stable machine code (e.g. ``invalid_title``). Extra
    context travels in ``detail``.
"""
from __future__ import annotations

from typing import Any, Optional


class ValidationError(ValueError):
    """Input rejected before any gateway call (e.g. empty title, unanswered questions)."""

    def __init__(self, code: str, detail: Optional[Any] = None) -> None:
        super().__init__(code)
        self.code = code
        self.detail = detail


class NotFoundError(LookupError):
    """A course, module, quiz or draft id did not resolve."""


class GatewayError(RuntimeError):
    """The managed backend or the network failed; message is the backend's text."""

    def __init__(self, message: str, *, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table


class IndexOutOfRange(IndexError):
    """An editing operation addressed a list position that does not exist."""

    def __init__(self, index: int, length: int) -> None:
        super().__init__(f"index {index} out of range for {length} item(s)")
        self.index = index
        self.length = length


__all__ = ["ValidationError", "NotFoundError", "GatewayError", "IndexOutOfRange"]
