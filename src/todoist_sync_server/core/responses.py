"""Pydantic models for Todoist REST payloads.

Todoist list endpoints answer either with a bare JSON array or with a
paginated envelope ``{"results": [...], "next_cursor": ...}``.
``decode_listing`` turns a raw payload into one of the two listing models
and rejects everything else with ``MalformedResponseError``.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from ..exceptions import MalformedResponseError

M = TypeVar("M", bound=BaseModel)


class RemoteProject(BaseModel):
    """A project as returned by Todoist."""

    id: str
    name: str
    color: str | int = "charcoal"

    model_config = {"frozen": True, "coerce_numbers_to_str": True}


class RemoteDue(BaseModel):
    """Due information attached to a remote task.

    ``datetime`` is only present for tasks with a time of day.
    """

    date: str | None = None
    datetime: str | None = None

    model_config = {"frozen": True}

    @property
    def value(self) -> str | None:
        return self.datetime or self.date


class RemoteTask(BaseModel):
    """A task as returned by Todoist."""

    id: str
    content: str
    description: str | None = ""
    priority: int = Field(default=1, ge=1, le=4)
    due: RemoteDue | None = None
    project_id: str = Field(
        validation_alias=AliasChoices("project_id", "projectId")
    )
    completed: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "checked", "is_completed", "isCompleted", "completed"
        ),
    )

    model_config = {"frozen": True, "coerce_numbers_to_str": True}


# ---------------------------------------------------------------------------
# Listing shapes
# ---------------------------------------------------------------------------


class BareListing(BaseModel):
    """A listing returned as a plain JSON array."""

    items: list[dict[str, Any]]

    model_config = {"frozen": True}


class EnvelopeListing(BaseModel):
    """A listing wrapped in a cursor-paginated envelope."""

    items: list[dict[str, Any]]
    next_cursor: str | None = None

    model_config = {"frozen": True}


Listing = BareListing | EnvelopeListing


def decode_listing(payload: Any) -> Listing:
    """Classify a raw listing payload.

    Raises:
        MalformedResponseError: If the payload is neither a list of
            objects nor a ``results`` envelope.
    """
    try:
        match payload:
            case list():
                return BareListing(items=payload)
            case {"results": list() as results}:
                return EnvelopeListing(
                    items=results, next_cursor=payload.get("next_cursor")
                )
            case _:
                raise MalformedResponseError(
                    f"Unexpected listing shape: {type(payload).__name__}"
                )
    except ValidationError as exc:
        raise MalformedResponseError(
            f"Listing contains non-object items: {exc.error_count()} error(s)"
        ) from exc


def decode_items(items: list[dict[str, Any]], model: type[M]) -> list[M]:
    """Validate every listing item against *model*.

    Raises:
        MalformedResponseError: On the first item that does not fit.
    """
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as exc:
        raise MalformedResponseError(
            f"Invalid {model.__name__} in Todoist response: {exc}"
        ) from exc
