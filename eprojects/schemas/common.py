from typing import ClassVar

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base dos schemas da API: JSON em camelCase, atributos em snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UpdateModel(ApiModel):
    """Base das atualizações parciais: só os campos enviados são aplicados.

    `null` explícito só é aceito nos campos listados em `nullable_fields`;
    nos demais a coluna é obrigatória e a requisição é recusada com 422.
    """

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_null_required(self):
        for field in self.model_fields_set:
            if getattr(self, field) is None and field not in self.nullable_fields:
                raise ValueError(f"O campo {to_camel(field)} não pode ser nulo")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
