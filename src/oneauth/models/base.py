"""Shared base model for camelCase wire payloads"""
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize for a request body or a postMessage payload"""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
