"""Student identity handed to the session by the bootstrap layer."""

from __future__ import annotations

from pydantic import BaseModel


class StudentIdentity(BaseModel):
    """Who the session is tutoring.

    Supplied explicitly by the caller; the engine never looks it up.
    """

    student_id: str
    display_name: str | None = None
