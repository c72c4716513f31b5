"""CRUD handlers: the per-entity request pipelines.

Every operation ends in exactly one response. Client-caused conditions are
logged at info, internal faults at error with the detail kept out of the
response body.
"""

from typing import Any

from fastapi import Request, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from crudforge.api import render
from crudforge.api.decoder import DecodeError, RequestDecoder
from crudforge.api.serializer import SerializationFault, serialize
from crudforge.core.operation import Operation
from crudforge.core.payload import MutationPayload
from crudforge.core.types import INT64_MAX, get_field_type, to_snake
from crudforge.log import OperationLogger, get_logger
from crudforge.metadata.loader import EntityDescriptor, MetadataLoader
from crudforge.persistence.adapter import PersistenceAdapter
from crudforge.persistence.errors import (
    ConstraintError,
    NotFoundError,
    NotSingularError,
    StorageError,
)
from crudforge.validation import Validator, ValidatorFault

BAD_ID = "id must be an integer greater zero"

MAX_ITEMS_PER_PAGE = 100
# The row offset (page - 1) * itemsPerPage must fit in 64 bits
MAX_PAGE = INT64_MAX // MAX_ITEMS_PER_PAGE


class ListParams(BaseModel):
    """Pagination parameters of a list request."""

    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    items_per_page: int = Field(
        default=30, ge=1, le=MAX_ITEMS_PER_PAGE, alias="itemsPerPage"
    )


PAGINATION_KEYS = ("page", "itemsPerPage")


def parse_id(raw: str) -> int | None:
    """Parse a path identifier; None unless it is a positive 64-bit integer."""
    if not raw.isascii() or not raw.isdigit():
        return None
    value = int(raw)
    return value if 0 < value <= INT64_MAX else None


class CrudHandler:
    """Create, Read, Update, Delete and List for one entity kind.

    Args:
        entity: Descriptor of the kind served
        registry: Resolved descriptors, used to render nested entities
        adapter: Data access port shared by all handlers
        validator: Rule evaluator (defaults to the process-wide registry)
    """

    def __init__(
        self,
        entity: EntityDescriptor,
        registry: MetadataLoader,
        adapter: PersistenceAdapter,
        validator: Validator | None = None,
    ):
        self.entity = entity
        self.registry = registry
        self.adapter = adapter
        self.validator = validator or Validator()
        self.decoder = RequestDecoder(entity)
        self.log = get_logger(__name__, handler=entity.label)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(self, request: Request) -> Response:
        log = self.log.bind(method="Create")
        payload = await self._decode(log, request)
        if isinstance(payload, Response):
            return payload
        rejected = self._validate(log, payload, Operation.CREATE)
        if rejected:
            return rejected

        try:
            id = self.adapter.create(self.entity, payload)
        except ConstraintError as e:
            log.info("constraint violated", error=str(e))
            return render.bad_request(e.to_errors())
        except StorageError as e:
            log.error(f"error saving {self.entity.label}", error=str(e))
            return render.internal_server_error()

        return self._render_one(log, id, Operation.CREATE)

    async def read(self, request: Request) -> Response:
        log = self.log.bind(method="Read")
        id = self._path_id(log, request)
        if isinstance(id, Response):
            return id
        return self._render_one(log, id, Operation.READ)

    async def update(self, request: Request) -> Response:
        log = self.log.bind(method="Update")
        id = self._path_id(log, request)
        if isinstance(id, Response):
            return id
        payload = await self._decode(log, request)
        if isinstance(payload, Response):
            return payload
        rejected = self._validate(log, payload, Operation.UPDATE)
        if rejected:
            return rejected

        try:
            self.adapter.update(self.entity, id, payload)
        except NotFoundError as e:
            log.info(str(e), id=id)
            return render.not_found(str(e))
        except ConstraintError as e:
            log.info("constraint violated", id=id, error=str(e))
            return render.bad_request(e.to_errors())
        except StorageError as e:
            log.error(f"error updating {self.entity.label}", id=id, error=str(e))
            return render.internal_server_error()

        return self._render_one(log, id, Operation.UPDATE)

    async def delete(self, request: Request) -> Response:
        log = self.log.bind(method="Delete")
        id = self._path_id(log, request)
        if isinstance(id, Response):
            return id

        try:
            self.adapter.delete(self.entity, id)
        except NotFoundError as e:
            log.info(str(e), id=id)
            return render.not_found(str(e))
        except ConstraintError as e:
            log.info("constraint violated", id=id, error=str(e))
            return render.bad_request(e.to_errors())
        except StorageError as e:
            log.error(f"error deleting {self.entity.label} from db", id=id, error=str(e))
            return render.internal_server_error()

        log.info(f"{self.entity.label} deleted", id=id)
        return render.no_content()

    async def list(self, request: Request) -> Response:
        log = self.log.bind(method="List")
        query = request.query_params

        try:
            params = ListParams.model_validate(
                {key: query[key] for key in PAGINATION_KEYS if key in query}
            )
        except ValidationError as e:
            errors = {str(err["loc"][0]): err["msg"] for err in e.errors()}
            log.info("invalid query parameters", errors=errors)
            return render.bad_request(errors)

        filters, errors = self._filters(query)
        if errors:
            log.info("invalid query parameters", errors=errors)
            return render.bad_request(errors)

        groups = self.entity.groups_for(Operation.LIST)
        plural = to_snake(self.entity.plural_name).replace("_", " ")
        try:
            records = self.adapter.list(
                self.entity,
                page=params.page,
                per_page=params.items_per_page,
                filters=filters,
                eager=self.entity.eager_for(groups),
            )
        except StorageError as e:
            log.error(f"error fetching {plural} from db", error=str(e))
            return render.internal_server_error()

        try:
            body = [serialize(record, self.registry, groups) for record in records]
        except SerializationFault as e:
            log.error("serialization error", error=str(e))
            return render.internal_server_error()

        log.info(f"{plural} rendered", page=params.page, count=len(body))
        return render.ok(body)

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _path_id(self, log: OperationLogger, request: Request) -> int | Response:
        raw = request.path_params.get("id", "")
        id = parse_id(raw)
        if id is None:
            log.info("error getting id from url parameter", id=raw)
            return render.bad_request(BAD_ID)
        return id

    async def _decode(self, log: OperationLogger, request: Request) -> MutationPayload | Response:
        try:
            return self.decoder.decode(await request.body())
        except DecodeError as e:
            log.info("error decoding json", error=str(e))
            return render.bad_request(e.to_errors())

    def _validate(
        self, log: OperationLogger, payload: MutationPayload, operation: Operation
    ) -> Response | None:
        try:
            result = self.validator.validate(self.entity, payload, operation)
        except ValidatorFault as e:
            log.error("error validating request data", error=str(e))
            return render.internal_server_error()
        if not result.valid:
            log.info("validation failed", errors=result.errors)
            return render.bad_request(result.errors)
        return None

    def _filters(self, query: Any) -> tuple[dict[str, Any], dict[str, str]]:
        """Equality filters from query parameters naming scalar fields."""
        filters: dict[str, Any] = {}
        errors: dict[str, str] = {}
        for key in query.keys():
            field = self.entity.get_field(key)
            if field is None:
                continue
            raw = query[key]
            try:
                value = get_field_type(field.type).parse_query(raw)
            except ValueError:
                errors[key] = f"invalid {field.type} value"
                continue
            if field.values and value not in field.values:
                errors[key] = f"must be one of: {' '.join(field.values)}"
                continue
            filters[key] = value
        return filters, errors

    def _render_one(self, log: OperationLogger, id: int, operation: Operation) -> Response:
        """Reload an entity with the relations its groups need and render it."""
        groups = self.entity.groups_for(operation)
        try:
            record = self.adapter.fetch(self.entity, id, eager=self.entity.eager_for(groups))
        except NotFoundError as e:
            log.info(str(e), id=id)
            return render.not_found(str(e))
        except NotSingularError as e:
            log.error(str(e), id=id)
            return render.bad_request(str(e))
        except StorageError as e:
            log.error(f"error fetching {self.entity.label} from db", id=id, error=str(e))
            return render.internal_server_error()

        try:
            body = serialize(record, self.registry, groups)
        except SerializationFault as e:
            log.error("serialization error", id=id, error=str(e))
            return render.internal_server_error()

        log.info(f"{self.entity.label} rendered", id=id)
        return render.ok(body)
