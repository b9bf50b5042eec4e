"""JsonModel base class for API communication."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JsonModel(BaseModel):
    """Base model with camelCase on the wire and snake_case in Python.

    The persisted config document and the admin endpoints both speak
    camelCase (``cronExpression``), so every model accepts either form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def model_dump_json(self, **kwargs) -> str:
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)

