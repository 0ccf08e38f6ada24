"""Router module: a route trie with mounting support.

Routes map an HTTP method and a path pattern (``/items/{ID}``) to a
request-object type. Matching a concrete path yields the route and the
captured path parameters in pattern order.
"""

from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from .fields import RequestSpec
from .models import HTTPMethod

if TYPE_CHECKING:
    from .binder import RequestBinder, RequestWrapper


class Route:
    """A registered request-object type at a method and path pattern."""

    def __init__(self, method: HTTPMethod, path: str, template: Any):
        self.method = method
        self.path = path
        self.template = template
        request_type = template if isinstance(template, type) else type(template)
        # Raises InvalidHandlerTypeError for types that cannot be dispatched
        self.spec = RequestSpec.for_type(request_type)
        self.wrapper: Optional["RequestWrapper"] = None

    @property
    def request_type(self):
        return self.spec.request_type

    def bind(self, binder: "RequestBinder") -> "RequestWrapper":
        """Create the dispatch wrapper for this route with ``binder``."""
        self.wrapper = binder.wrap(self.template, route=self.path)
        return self.wrapper

    def with_path(self, path: str) -> "Route":
        route = Route(self.method, path, self.template)
        route.wrapper = self.wrapper
        return route

    def __repr__(self):
        return f"Route({self.method.value} {self.path} -> {self.request_type.__name__})"


class RouteNode:
    """A node in the route trie structure.

    Each node represents a path segment and can have:
    - static_children: Dict mapping exact segment strings to child nodes
    - param_child: Single child node for path parameters (e.g., {id})
    - routes: Dict mapping HTTP methods to Routes at this path
    """

    def __init__(self):
        self.static_children: Dict[str, "RouteNode"] = {}
        self.param_child: Optional[Tuple[str, "RouteNode"]] = None  # (param_name, node)
        self.routes: Dict[HTTPMethod, Route] = {}

    def add_route(self, segments: List[str], method: HTTPMethod, route: Route) -> None:
        """Add a route to the trie.

        Args:
            segments: Path segments (e.g., ['items', '{ID}'])
            method: HTTP method
            route: Route instance
        """
        if not segments:
            self.routes[method] = route
            return

        segment = segments[0]
        remaining = segments[1:]

        if segment.startswith('{') and segment.endswith('}'):
            param_name = segment[1:-1]
            if self.param_child is None:
                self.param_child = (param_name, RouteNode())
            elif self.param_child[0] != param_name:
                raise ValueError(
                    f"Conflicting path parameter '{{{param_name}}}': "
                    f"'{{{self.param_child[0]}}}' is already registered at this position"
                )
            _, child_node = self.param_child
            child_node.add_route(remaining, method, route)
        else:
            if segment not in self.static_children:
                self.static_children[segment] = RouteNode()
            self.static_children[segment].add_route(remaining, method, route)

    def match(self, segments: List[str], method: HTTPMethod) -> Optional[Tuple[Route, Dict[str, str]]]:
        """Match a path against the trie.

        Returns:
            Tuple of (Route, path_params) if matched, None otherwise
        """
        if not segments:
            route = self.routes.get(method)
            if route:
                return (route, {})
            return None

        segment = segments[0]
        remaining = segments[1:]

        # Try static match first (more specific)
        if segment in self.static_children:
            result = self.static_children[segment].match(remaining, method)
            if result:
                return result

        if self.param_child:
            param_name, child_node = self.param_child
            result = child_node.match(remaining, method)
            if result:
                route, params = result
                # Keep parameters in pattern order
                return (route, {param_name: segment, **params})

        return None

    def has_path(self, segments: List[str]) -> bool:
        """Check if any route exists at this path (regardless of method)."""
        if not segments:
            return bool(self.routes)

        segment = segments[0]
        remaining = segments[1:]

        if segment in self.static_children:
            if self.static_children[segment].has_path(remaining):
                return True

        if self.param_child:
            _, child_node = self.param_child
            if child_node.has_path(remaining):
                return True

        return False


def normalize_path(prefix: str, path: str) -> str:
    """Normalize a path by combining prefix and path, handling double slashes.

    Examples:
        normalize_path("/", "/items") -> "/items"
        normalize_path("/api", "items") -> "/api/items"
        normalize_path("/api/", "/items") -> "/api/items"
    """
    if not prefix.startswith('/'):
        prefix = '/' + prefix

    if prefix != '/' and prefix.endswith('/'):
        prefix = prefix.rstrip('/')

    if not path.startswith('/'):
        path = '/' + path

    if prefix == '/':
        return path

    return prefix + path


def _split(path: str) -> List[str]:
    return [s for s in path.split('/') if s]


class Router:
    """Router for organizing request-object routes with mounting support.

    Routers can be built on their own and mounted into an application (or
    another router) under a prefix::

        items = Router()

        @items.get("/{ID}")
        class GetItem(BaseModel):
            ...

        app.mount("/items", items)
    """

    def __init__(self, app: Optional[Any] = None):
        """Initialize a router.

        Args:
            app: Optional RestApplication whose binder wraps registered routes
        """
        self.app = app
        self._routes: List[Route] = []
        self._mounted_routers: List[Tuple[str, "Router"]] = []  # (prefix, router) pairs
        self._route_tree = RouteNode()

    def add_route(self, method: HTTPMethod, path: str, template: Any) -> Route:
        """Register a request-object type (class or template instance) at ``path``."""
        route = Route(method, path, template)
        self._route_tree.add_route(_split(path), method, route)
        if self.app is not None:
            route.bind(self.app.binder)
        self._routes.append(route)
        return route

    def mount(self, prefix: str, router: "Router"):
        """Mount another router with a given prefix.

        Example:
            items_router = Router()
            items_router.get("/{ID}")(GetItem)

            app.mount("/items", items_router)
            # This creates the route GET /items/{ID}
        """
        self._mounted_routers.append((prefix, router))

        for route_path, route in router.get_all_routes(prefix):
            mounted = route.with_path(route_path)
            if self.app is not None:
                mounted.bind(self.app.binder)
            self._route_tree.add_route(_split(route_path), route.method, mounted)

    def get_all_routes(self, prefix: str = "") -> List[Tuple[str, Route]]:
        """Get all routes from this router and mounted routers.

        Returns:
            List of (path, route) tuples
        """
        routes = []

        for route in self._routes:
            routes.append((normalize_path(prefix, route.path), route))

        for mount_prefix, mounted_router in self._mounted_routers:
            combined_prefix = normalize_path(prefix, mount_prefix)
            routes.extend(mounted_router.get_all_routes(combined_prefix))

        return routes

    def get(self, path: str):
        """Decorator to register a GET request type."""
        return self._route_decorator(HTTPMethod.GET, path)

    def post(self, path: str):
        """Decorator to register a POST request type."""
        return self._route_decorator(HTTPMethod.POST, path)

    def put(self, path: str):
        """Decorator to register a PUT request type."""
        return self._route_decorator(HTTPMethod.PUT, path)

    def delete(self, path: str):
        """Decorator to register a DELETE request type."""
        return self._route_decorator(HTTPMethod.DELETE, path)

    def patch(self, path: str):
        """Decorator to register a PATCH request type."""
        return self._route_decorator(HTTPMethod.PATCH, path)

    def _route_decorator(self, method: HTTPMethod, path: str):
        def decorator(template: Any):
            self.add_route(method, path, template)
            return template

        return decorator

    def match_route(self, path: str, method: HTTPMethod) -> Optional[Tuple[Route, Dict[str, str]]]:
        """Match a route using the trie structure.

        Args:
            path: Request path (e.g., "/items/42")
            method: HTTP method

        Returns:
            Tuple of (Route, path_params) if matched, None otherwise
        """
        if isinstance(method, str):
            method = HTTPMethod(method.upper())
        return self._route_tree.match(_split(path), method)

    def has_path(self, path: str) -> bool:
        """Check if any route exists at the given path (regardless of method)."""
        return self._route_tree.has_path(_split(path))

    def get_methods_for_path(self, path: str) -> List[HTTPMethod]:
        """Get all HTTP methods that have registered routes at this path."""
        segments = _split(path)
        methods = [m for m in HTTPMethod if self._route_tree.match(segments, m)]
        return sorted(methods, key=lambda m: m.value)
