"""
Endpoint discovery over the application's route table.

The contract tests do not hard-code paths. They ask the app which routes it
registered and generate one case per (path, method). An app that registers
nothing is treated as a broken test host, not as a suite with zero cases.
"""
import weakref
from typing import NamedTuple, Tuple

from fastapi import FastAPI


class NoEndpointsDiscoveredError(RuntimeError):
    """Raised when the route table yields no (path, method) pairs."""


class EndpointInfo(NamedTuple):
    """One (route path, HTTP method) pair taken from the route table."""

    path: str
    http_method: str


_DISCOVERED: "weakref.WeakKeyDictionary[FastAPI, Tuple[EndpointInfo, ...]]" = weakref.WeakKeyDictionary()


def _child_routes(entry) -> list:
    """Routes held by an included router or a mounted sub-application."""
    router = getattr(entry, "original_router", None) or getattr(entry, "router", None)
    if router is not None and getattr(router, "routes", None) is not None:
        return list(router.routes)
    return list(getattr(entry, "routes", None) or [])


def _walk_routes(routes, prefix: str = "") -> set:
    endpoints = set()
    for route in routes:
        path = getattr(route, "path", None)
        methods = getattr(route, "methods", None)
        if path and methods:
            for method in methods:
                endpoints.add(EndpointInfo(prefix + path, method.upper()))
            continue
        # include_router entries and mounts: recurse, keeping the prefix.
        # Websocket routes have a path but no methods and no children.
        child_prefix = prefix + (getattr(route, "prefix", None) or path or "")
        endpoints.update(_walk_routes(_child_routes(route), child_prefix))
    return endpoints


def discover_endpoints(app: FastAPI) -> Tuple[EndpointInfo, ...]:
    """
    Enumerate every registered (path, method) pair of `app`.

    Memoized per application instance: repeated calls return the same tuple.
    Errors raised while walking the route table propagate unchanged.

    Raises:
        NoEndpointsDiscoveredError: the app has no routable endpoints
    """
    cached = _DISCOVERED.get(app)
    if cached is not None:
        return cached

    endpoints = tuple(sorted(_walk_routes(app.routes)))
    if not endpoints:
        raise NoEndpointsDiscoveredError(
            f"No endpoints were discovered in application '{app.title}'. "
            "Cannot proceed with API tests."
        )

    _DISCOVERED[app] = endpoints
    return endpoints


def get_endpoints(app: FastAPI, method: str = "GET") -> Tuple[EndpointInfo, ...]:
    """Discovered endpoints restricted to one HTTP method (case-insensitive)."""
    wanted = method.upper()
    return tuple(endpoint for endpoint in discover_endpoints(app) if endpoint.http_method == wanted)
