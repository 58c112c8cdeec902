from typing import Any, Dict
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """
    Base for records shared with the remote stores.
    Stored documents use camelCase keys (employeeEmail, isDisabled, ...);
    Python code uses snake_case attributes. Both spellings are accepted on input.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the JSON shape written to the store."""
        return self.model_dump(mode="json", by_alias=True)

class MessageResponse(BaseModel):
    success: bool = True
    message: str
