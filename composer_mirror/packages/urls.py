"""Route table based URL generation."""

import re
from typing import Any, Dict, Mapping, Optional

from ..common.config import DEFAULT_ROUTES
from .base import UrlGenerator

_PLACEHOLDER = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")


class RouteUrlGenerator(UrlGenerator):
    """Generates URLs from ``name -> template`` routes.

    Templates use ``{param}`` placeholders. Parameter values are inserted
    verbatim, so package names keep their vendor slash.
    """

    def __init__(self, routes: Optional[Mapping[str, str]] = None, base_url: str = ""):
        self.routes: Dict[str, str] = dict(DEFAULT_ROUTES if routes is None else routes)
        self.base_url = base_url.rstrip("/")

    def generate(self, route: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Generate the URL for a route.

        Raises:
            KeyError: If the route is unknown
            ValueError: If a placeholder has no value in params
        """
        template = self.routes[route]
        params = params or {}

        def substitute(match: "re.Match[str]") -> str:
            key = match.group(1)
            if key not in params:
                raise ValueError(f"Missing parameter '{key}' for route {route}")
            return str(params[key])

        return self.base_url + _PLACEHOLDER.sub(substitute, template)
