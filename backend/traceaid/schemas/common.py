"""Shared schema types: the response envelope."""

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

ReviewAction = Literal["approve", "reject"]


class Envelope(BaseModel, Generic[T]):
    """``{statusCode, statusText, message, data}`` wrapper used by every endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: bool = Field(True, alias="statusCode")
    status_text: str = Field("OK", alias="statusText")
    message: str
    data: T | None = None


class ReviewDecision(BaseModel):
    action: ReviewAction
    reason: str | None = Field(None, max_length=2000)
