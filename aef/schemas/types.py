"""
Shared type definitions for schemas.

Layering:
- This module provides FOUNDATION types (BaseStrictModel, PermissiveModel, JsonDatetime)
- entries.py, validation.py and operations.py import from here
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

import pydantic
from typing_extensions import TypeAliasType

# ==============================================================================
# Base Strict Model (Foundation)
# ==============================================================================


class BaseStrictModel(pydantic.BaseModel):
    """
    Foundation strict model - every closed record shape inherits from this.

    Uses extra='forbid' to reject unknown fields - any field not modeled
    causes immediate validation failure (fail-fast).
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',  # Reject unknown fields (fail-fast)
        strict=True,  # Strict type coercion
        frozen=True,  # Immutable after creation
    )


# ==============================================================================
# Permissive Model (Foundation)
# ==============================================================================


class PermissiveModel(pydantic.BaseModel):
    """
    Foundation permissive model for open record shapes.

    Symmetry with BaseStrictModel:
    - BaseStrictModel: extra='forbid' (rejects unknown fields)
    - PermissiveModel: extra='allow' (accepts unknown fields)

    Extension entries carry vendor-defined fields on top of the base entry,
    so they are the main user of this model.
    """

    model_config = pydantic.ConfigDict(
        extra='allow',  # Accept unknown fields
        strict=True,  # Strict type coercion for known fields
        frozen=True,  # Immutable after creation
    )

    def get_extra_fields(self) -> dict[str, object]:
        """Get extra fields captured by this permissive model.

        Returns only the unknown fields, not defined model fields.
        """
        return dict(self.__pydantic_extra__) if self.__pydantic_extra__ else {}


# ==============================================================================
# Primitive Types
# ==============================================================================

JsonDatetime = TypeAliasType('JsonDatetime', Annotated[datetime, pydantic.Field(strict=False)])
"""Pydantic-enhanced datetime for JSON serialization (allows string->datetime conversion)."""
