"""Shared schema configuration.

The HTTP contract is camelCase (``branchId``, ``totalQuantity``); Python code
uses snake_case. Every schema accepts either spelling on input and emits
camelCase through ``aquaflow.core.responses.envelope``.
"""

from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
        "alias_generator": to_camel,
    }


class StatusUpdate(CamelModel):
    """Requested status; validated against the resource's vocabulary by the service."""

    status: str


class ReasonBody(CamelModel):
    reason: Optional[str] = None
