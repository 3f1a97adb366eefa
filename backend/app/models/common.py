"""
backend/app/models/common.py

Purpose:
    Pydantic V2 bridge for BSON ObjectId so Mongo documents validate into
    models and serialize ids as plain strings.

Dependencies:
    - bson.ObjectId
    - pydantic_core.core_schema
"""

from typing import Any

from bson import ObjectId
from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema


def _to_object_id(value: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise ValueError(f"'{value}' is not a valid ObjectId")
    return ObjectId(value)


class PyObjectId(str):
    """Accepts an ObjectId or its 24-char hex form; dumps as str."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        from_str = core_schema.no_info_after_validator_function(
            _to_object_id, core_schema.str_schema()
        )
        return core_schema.json_or_python_schema(
            json_schema=from_str,
            python_schema=core_schema.union_schema(
                [core_schema.is_instance_schema(ObjectId), from_str]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )
