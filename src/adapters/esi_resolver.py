"""EVE ESI lookup adapter.

Implements the core LocationResolverPort. Static universe data never changes
while the watcher runs, so every successful lookup is cached by id for the
process lifetime. Failures are not cached and raise ResolveError.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional

from core.config import ResolverConfig
from core.errors import ResolveError

LOGGER = logging.getLogger(__name__)


class EsiResolver:
    """Resolve solar systems to regions and type/system ids to names."""

    def __init__(
        self,
        config: ResolverConfig,
        user_agent: str = "killwatch",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config
        self._user_agent = user_agent
        self._logger = logger or LOGGER
        self._systems: dict[int, dict[str, Any]] = {}
        self._constellation_regions: dict[int, int] = {}
        self._type_names: dict[int, str] = {}

    def _endpoint(self, path: str) -> str:
        query = urllib.parse.urlencode({"datasource": self._config.datasource})
        return f"{self._config.base_url.rstrip('/')}/{path.strip('/')}/?{query}"

    def _get_json(self, path: str) -> dict[str, Any]:
        url = self._endpoint(path)
        request = urllib.request.Request(url, method="GET")
        request.add_header("Accept", "application/json")
        request.add_header("User-Agent", self._user_agent)
        try:
            with urllib.request.urlopen(request, timeout=self._config.timeout_seconds) as response:
                data = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise ResolveError(f"ESI error {e.code} for {path}: {body}") from e
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            raise ResolveError(f"ESI request failed for {path}: {e}") from e
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors.
            raise ResolveError(f"Invalid ESI response for {path}: {e}") from e
        if not isinstance(data, dict):
            raise ResolveError(f"Unexpected ESI response for {path}")
        return data

    def _system(self, location_id: int) -> dict[str, Any]:
        if location_id in self._systems:
            self._logger.debug("Found solar system #%d in cache", location_id)
            return self._systems[location_id]
        self._logger.debug("Querying ESI for solar system #%d", location_id)
        system = self._get_json(f"universe/systems/{location_id}")
        self._systems[location_id] = system
        return system

    def query_region_id(self, location_id: int) -> int:
        system = self._system(location_id)
        try:
            constellation_id = int(system["constellation_id"])
        except (KeyError, TypeError, ValueError) as e:
            raise ResolveError(f"Solar system #{location_id} has no constellation") from e

        if constellation_id not in self._constellation_regions:
            self._logger.debug("Querying ESI for constellation #%d", constellation_id)
            constellation = self._get_json(f"universe/constellations/{constellation_id}")
            try:
                self._constellation_regions[constellation_id] = int(constellation["region_id"])
            except (KeyError, TypeError, ValueError) as e:
                raise ResolveError(f"Constellation #{constellation_id} has no region") from e
        return self._constellation_regions[constellation_id]

    def query_ship_name(self, ship_type_id: int) -> str:
        if ship_type_id in self._type_names:
            return self._type_names[ship_type_id]
        self._logger.debug("Querying ESI for item type #%d", ship_type_id)
        item_type = self._get_json(f"universe/types/{ship_type_id}")
        name = item_type.get("name")
        if not name:
            raise ResolveError(f"Item type #{ship_type_id} has no name")
        self._type_names[ship_type_id] = str(name)
        return self._type_names[ship_type_id]

    def query_location_name(self, location_id: int) -> str:
        name = self._system(location_id).get("name")
        if not name:
            raise ResolveError(f"Solar system #{location_id} has no name")
        return str(name)
