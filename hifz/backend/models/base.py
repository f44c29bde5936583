from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model for shapes exchanged with the mobile/web clients.
    Fields are snake_case in Python and camelCase on the wire; both spellings are accepted on input.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
