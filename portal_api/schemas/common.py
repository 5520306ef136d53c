"""Shared schema building blocks: camelCase base, response envelope, pages."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire. Accepts either on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[T]):
    """Uniform success envelope: {success, message, data}."""

    success: bool = True
    message: str = ""
    data: T | None = None


class Page(CamelModel, Generic[T]):
    """Paginated listing."""

    items: list[T]
    page: int
    limit: int
    total: int
    total_pages: int


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: list[FieldError] | None = None
