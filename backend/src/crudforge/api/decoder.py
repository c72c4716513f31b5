"""Request body decoding into tri-state mutation payloads.

One pydantic model is generated per entity kind when the handler set is
built. Every member is optional so that presence can be read back from
``model_fields_set``; nothing is inferred at request time.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from crudforge.core.payload import MutationPayload
from crudforge.core.types import INT64_MAX, INT64_MIN, get_field_type
from crudforge.metadata.loader import EdgeDescriptor, EntityDescriptor, FieldDescriptor

INVALID_JSON = "invalid json string"


class DecodeError(Exception):
    """The request body is not valid JSON or does not fit the entity shape.

    Attributes:
        field: The member whose value had the wrong type, if any
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)

    def to_errors(self) -> str | dict[str, str]:
        if self.field:
            return {self.field: str(self)}
        return str(self)


# Integers must fit a SQLite INTEGER column
Int64 = Annotated[int, Field(ge=INT64_MIN, le=INT64_MAX)]


def _field_annotation(field: FieldDescriptor) -> Any:
    if field.type == "enum":
        return Literal[field.values]
    python_type = get_field_type(field.type).python_type
    return Int64 if python_type is int else python_type


def _edge_annotation(edge: EdgeDescriptor) -> Any:
    return Int64 if edge.unique else list[Int64]


def build_payload_model(entity: EntityDescriptor) -> type[BaseModel]:
    """Generate the pydantic model accepted as request body for an entity.

    Members are declared under positional attribute names with the member
    name as alias, so entity fields never shadow BaseModel attributes.
    """
    definitions: dict[str, Any] = {}
    for index, field in enumerate(entity.fields):
        definitions[f"m{index}"] = (
            _field_annotation(field) | None,
            Field(default=None, alias=field.name),
        )
    offset = len(entity.fields)
    for index, edge in enumerate(entity.edges):
        definitions[f"m{offset + index}"] = (
            _edge_annotation(edge) | None,
            Field(default=None, alias=edge.name),
        )

    return create_model(
        f"{entity.name}Payload",
        __config__=ConfigDict(strict=True, extra="ignore"),
        __doc__=f"Request body for {entity.name} create and update",
        **definitions,
    )


class RequestDecoder:
    """Decodes request bodies for one entity kind."""

    def __init__(self, entity: EntityDescriptor):
        self.entity = entity
        self.model = build_payload_model(entity)
        # attribute name -> (member name, clearable)
        self._members: dict[str, tuple[str, bool]] = {}
        for index, field in enumerate(entity.fields):
            self._members[f"m{index}"] = (field.name, field.nullable)
        offset = len(entity.fields)
        for index, edge in enumerate(entity.edges):
            self._members[f"m{offset + index}"] = (edge.name, not edge.required)

    def decode(self, body: bytes) -> MutationPayload:
        """Decode a JSON object body.

        Keys the client did not send stay absent. An explicit null clears
        nullable fields and optional edges; on anything else it is treated
        as absent.

        Raises:
            DecodeError: Malformed JSON, a non-object document, or a value
                of the wrong type
        """
        try:
            model = self.model.model_validate_json(body or b"")
        except ValidationError as e:
            raise self._decode_error(e) from None

        values: dict[str, Any] = {}
        for attr, (name, clearable) in self._members.items():
            if attr not in model.model_fields_set:
                continue
            value = getattr(model, attr)
            if value is None and not clearable:
                continue
            values[name] = value
        return MutationPayload(entity=self.entity.name, values=values)

    def _decode_error(self, error: ValidationError) -> DecodeError:
        first = error.errors()[0]
        if first["type"] == "json_invalid" or not first["loc"]:
            return DecodeError(INVALID_JSON)
        # loc is (member,) or (member, index) for plural edges
        member = first["loc"][0]
        if isinstance(member, str) and member in self._members:
            member = self._members[member][0]
        return DecodeError(first["msg"], field=str(member))
