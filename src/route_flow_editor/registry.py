"""
Entity registry for routes, data models, roles and settings.

Every operation is synchronous and total: updates and deletes for unknown
ids are no-ops, and each mutator returns the updated collection.
"""

import logging

from .exceptions import RouteNotFoundError
from .models import ModelDefinition, Role, Route, Settings

logger = logging.getLogger(__name__)


class EntityRegistry:
    """
    Owns the domain entities a flow can be bound to.

    The registry is the only owner of committed ``Route.flow_data``. It also
    tracks the ``current_route`` being edited so that a commit through
    ``update_route`` refreshes both views of the same route at once.
    """

    def __init__(
        self,
        routes: list[Route] | None = None,
        models: list[ModelDefinition] | None = None,
        roles: list[Role] | None = None,
        settings: Settings | None = None,
    ):
        self._routes: list[Route] = list(routes or [])
        self._models: list[ModelDefinition] = list(models or [])
        self._roles: list[Role] = list(roles or [])
        self._settings: Settings = settings or Settings()
        self._current_route: Route | None = None
        self.default_tables_shown = False

    def __repr__(self) -> str:
        return (
            f"EntityRegistry(routes={len(self._routes)}, "
            f"models={len(self._models)}, roles={len(self._roles)})"
        )

    # ==================== Routes ====================

    @property
    def routes(self) -> list[Route]:
        return list(self._routes)

    @property
    def current_route(self) -> Route | None:
        return self._current_route

    def get_route(self, route_id: str) -> Route:
        """
        Get a route by ID.

        Raises:
            RouteNotFoundError: If no route has this id
        """
        for route in self._routes:
            if route.id == route_id:
                return route
        raise RouteNotFoundError(f"Route '{route_id}' not found")

    def set_current_route(self, route_id: str | None) -> Route | None:
        """
        Mark a route as the one being edited.

        Raises:
            RouteNotFoundError: If ``route_id`` is not registered
        """
        self._current_route = None if route_id is None else self.get_route(route_id)
        return self._current_route

    def add_route(self, route: Route) -> list[Route]:
        self._routes.append(route)
        logger.debug(f"Added route '{route.id}' ({route.method} {route.url})")
        return self.routes

    def update_route(self, route: Route) -> list[Route]:
        """
        Replace the stored route with the same id.

        If the route is also the current one, the current reference is
        replaced in the same step. Unknown ids leave the registry unchanged.
        """
        self._routes = [route if r.id == route.id else r for r in self._routes]
        if self._current_route is not None and self._current_route.id == route.id:
            self._current_route = route
        logger.debug(f"Updated route '{route.id}'")
        return self.routes

    def delete_route(self, route_id: str) -> list[Route]:
        self._routes = [r for r in self._routes if r.id != route_id]
        if self._current_route is not None and self._current_route.id == route_id:
            self._current_route = None
        logger.debug(f"Deleted route '{route_id}'")
        return self.routes

    # ==================== Models ====================

    @property
    def models(self) -> list[ModelDefinition]:
        return list(self._models)

    def add_model(self, model: ModelDefinition) -> list[ModelDefinition]:
        self._models.append(model)
        return self.models

    def update_model(self, model: ModelDefinition) -> list[ModelDefinition]:
        self._models = [model if m.id == model.id else m for m in self._models]
        return self.models

    def delete_model(self, model_id: str) -> list[ModelDefinition]:
        self._models = [m for m in self._models if m.id != model_id]
        return self.models

    # ==================== Roles ====================

    @property
    def roles(self) -> list[Role]:
        return list(self._roles)

    def add_role(self, role: Role) -> list[Role]:
        self._roles.append(role)
        return self.roles

    def update_role(self, role: Role) -> list[Role]:
        self._roles = [role if r.id == role.id else r for r in self._roles]
        return self.roles

    def delete_role(self, role_id: str) -> list[Role]:
        self._roles = [r for r in self._roles if r.id != role_id]
        return self.roles

    # ==================== Settings ====================

    @property
    def settings(self) -> Settings:
        return self._settings

    def update_settings(self, settings: Settings) -> Settings:
        self._settings = settings
        logger.info("Updated project settings")
        return self._settings

    def set_default_tables_shown(self, shown: bool) -> None:
        self.default_tables_shown = shown
