from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from aula.errors import NotFoundError, ValidationError
from aula.gateway.ports import GatewayProtocol, select_one
from aula.identity_access.profiles import USER_FALLBACK_NAME, display_names
from aula.learning.visibility import require_visible_module

MAX_COMMENT_LENGTH = 2000


class ListCommentsUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, module_id: str, *, viewer_sub: Optional[str]) -> List[Dict[str, Any]]:
        """Return the module's comments oldest first, each with ``author_name``.

        Modules of a draft course are only readable by the course owner.
        """
        require_visible_module(self._gateway, module_id, viewer_sub)
        rows = self._gateway.select("module_comments", eq={"module_id": module_id}, order_by="created_at")
        names = display_names(self._gateway, (r["user_id"] for r in rows), fallback=USER_FALLBACK_NAME)
        return [
            {
                "id": r["id"],
                "module_id": r["module_id"],
                "user_id": r["user_id"],
                "content": r["content"],
                "created_at": r.get("created_at"),
                "author_name": names.get(r["user_id"], USER_FALLBACK_NAME),
            }
            for r in rows
        ]


@dataclass
class AddCommentInput:
    module_id: str
    author_sub: str
    content: str


class AddCommentUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: AddCommentInput) -> Dict[str, Any]:
        if not isinstance(req.content, str):
            raise ValidationError("invalid_content")
        content = req.content.strip()
        if not content or len(content) > MAX_COMMENT_LENGTH:
            raise ValidationError("invalid_content")
        require_visible_module(self._gateway, req.module_id, req.author_sub)
        return self._gateway.insert(
            "module_comments",
            {"module_id": req.module_id, "user_id": req.author_sub, "content": content},
        )


@dataclass
class DeleteCommentInput:
    comment_id: str
    caller_sub: str


class DeleteCommentUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: DeleteCommentInput) -> None:
        """Delete a comment; only its author may do so (PermissionError otherwise)."""
        comment = select_one(self._gateway, "module_comments", id=req.comment_id)
        if comment is None:
            raise NotFoundError("comment_not_found")
        if comment.get("user_id") != req.caller_sub:
            raise PermissionError("forbidden")
        self._gateway.delete("module_comments", eq={"id": req.comment_id})


__all__ = [
    "ListCommentsUseCase",
    "AddCommentInput",
    "AddCommentUseCase",
    "DeleteCommentInput",
    "DeleteCommentUseCase",
]
