"""Canonical tool call request/result models."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from tutorkit.models.enums import ToolCallShape


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool call from the peer, normalized from any wire shape."""

    name: str
    """The function name being called."""

    call_id: str
    """Peer-assigned ID; results must be addressed with it."""

    args_json: str = "{}"
    """Raw JSON-encoded arguments, parsed lazily by the dispatcher."""

    shape: ToolCallShape = ToolCallShape.ARGUMENTS_DONE
    """Which wire shape delivered this call (diagnostics only)."""

    @classmethod
    def from_raw(
        cls,
        name: Any,
        call_id: Any,
        arguments: Any,
        shape: ToolCallShape,
    ) -> ToolCallRequest | None:
        """Build a request from loosely-typed wire fields.

        Returns ``None`` when ``name`` or ``call_id`` is not a non-empty
        string.  Arguments may be a JSON string, a mapping, or absent.
        """
        if not isinstance(name, str) or not name:
            return None
        if not isinstance(call_id, str) or not call_id:
            return None
        if arguments is None:
            args_json = "{}"
        elif isinstance(arguments, str):
            args_json = arguments or "{}"
        else:
            try:
                args_json = json.dumps(arguments)
            except (TypeError, ValueError):
                args_json = "{}"
        return cls(name=name, call_id=call_id, args_json=args_json, shape=shape)


class ToolCallResult(BaseModel):
    """Structured outcome returned to the peer for one call id."""

    ok: bool
    message: str = ""

    @classmethod
    def success(cls, message: str) -> ToolCallResult:
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, message: str) -> ToolCallResult:
        return cls(ok=False, message=message)

    def to_output(self) -> str:
        """JSON payload sent as the function output."""
        return self.model_dump_json()
