"""Request/response models for the collection reorder endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReorderRequest(BaseModel):
    """Body of ``PUT /api/collections/{slug}/reorder``.

    ``post_ids`` is the complete desired order of the collection's posts,
    first element first. Integers and numeric strings are accepted; JSON
    booleans and numbers with a decimal point are not.
    """

    model_config = ConfigDict(populate_by_name=True)

    post_ids: list[int] = Field(alias="postIds", min_length=1)

    @field_validator("post_ids", mode="before")
    @classmethod
    def reject_bool_and_float_ids(cls, v: Any) -> Any:
        # bool is an int subclass and lax mode would read 2.0 as 2
        if isinstance(v, list):
            for item in v:
                if isinstance(item, (bool, float)):
                    raise ValueError(f"post id {item!r} is not an integer")
        return v


class ReorderResult(BaseModel):
    collection_id: int
    post_ids: list[int]
    updated_rows: int


__all__ = ["ReorderRequest", "ReorderResult"]
