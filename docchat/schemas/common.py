"""
Common schemas for API requests and responses.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema exposing camelCase field names on the wire."""

    class Config:
        """Pydantic config."""

        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class HealthResponse(BaseModel):
    status: str
