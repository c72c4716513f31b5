"""Route selection and mounting for entity handler sets."""

from dataclasses import dataclass
from enum import IntFlag
from typing import Callable, Iterable

from fastapi import APIRouter

from crudforge.api.handler import CrudHandler


class Route(IntFlag):
    """Bit set selecting which operations of a handler set are exposed."""

    CREATE = 1
    READ = 2
    UPDATE = 4
    DELETE = 8
    LIST = 16

    ALL = CREATE | READ | UPDATE | DELETE | LIST

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "Route":
        """Combine lower-case operation names (``["read", "list"]``).

        Raises:
            ValueError: If a name is not an operation
        """
        routes = cls(0)
        for name in names:
            try:
                routes |= cls[name.upper()]
            except KeyError:
                raise ValueError(f"Unknown route '{name}'") from None
        return routes


@dataclass(frozen=True)
class RouteSpec:
    """One row of the route table."""

    route: Route
    method: str
    path: str
    operation: str

    def endpoint(self, handler: CrudHandler) -> Callable:
        return getattr(handler, self.operation)


ROUTE_TABLE: tuple[RouteSpec, ...] = (
    RouteSpec(Route.CREATE, "POST", "", "create"),
    RouteSpec(Route.READ, "GET", "/{id}", "read"),
    RouteSpec(Route.UPDATE, "PATCH", "/{id}", "update"),
    RouteSpec(Route.DELETE, "DELETE", "/{id}", "delete"),
    RouteSpec(Route.LIST, "GET", "", "list"),
)


def selected(routes: Route) -> list[RouteSpec]:
    """Table rows enabled by a route set, in table order."""
    return [entry for entry in ROUTE_TABLE if entry.route in routes]


def mount(router: APIRouter, handler: CrudHandler, routes: Route) -> None:
    """Add exactly the selected operations of a handler set to a router."""
    label = handler.entity.label
    for entry in selected(routes):
        router.add_api_route(
            entry.path,
            entry.endpoint(handler),
            methods=[entry.method],
            name=f"{label}:{entry.operation}",
        )


def create_entity_router(handler: CrudHandler, routes: Route | None = None) -> APIRouter:
    """Create the router serving one entity kind under its prefix."""
    entity = handler.entity
    if routes is None:
        routes = Route.from_names(entity.routes)
    router = APIRouter(prefix=entity.prefix, tags=[entity.name])
    mount(router, handler, routes)
    return router
