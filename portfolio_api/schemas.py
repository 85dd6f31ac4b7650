"""
Resource descriptions and pydantic schemas for the portfolio API.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


@dataclass(frozen=True)
class ResourceSpec:
    """
    Describes one document collection exposed under ``/api/<name>``.

    The three resources share one handler factory; these flags carry the
    places where they differ.
    """

    name: str
    label: str
    created_message: str
    # Drop any ``_id`` from update bodies before merging.
    strip_identifier: bool = True
    allow_get_by_id: bool = True

    @property
    def updated_message(self) -> str:
        return f"{self.label} updated!"

    @property
    def deleted_message(self) -> str:
        return f"{self.label} deleted!"

    @property
    def not_found_message(self) -> str:
        return f"{self.label} not found!"


PROJECTS = ResourceSpec(name="projects", label="Project", created_message="Project created!")
BLOGS = ResourceSpec(name="blogs", label="Blog", created_message="Blog created!")
# Contact messages keep ``_id`` in update bodies and have no single fetch.
MESSAGES = ResourceSpec(
    name="messages",
    label="Message",
    created_message="Message sent!",
    strip_identifier=False,
    allow_get_by_id=False,
)

RESOURCES: tuple[ResourceSpec, ...] = (PROJECTS, BLOGS, MESSAGES)

NO_CHANGES_MESSAGE = "No changes made!"


class Envelope(BaseModel):
    """Documents the response wrapper; handlers build it as plain JSON."""

    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None


class HealthResponse(BaseModel):
    message: str
    timestamp: datetime
