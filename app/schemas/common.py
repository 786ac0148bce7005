from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # responses go out in camelCase, requests are accepted by field name too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
