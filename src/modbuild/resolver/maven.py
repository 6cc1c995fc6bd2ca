"""Maven 2 repository support.

Module names are mapped to ``group:artifact`` and to a default version by
lookup chains. Each chain asks, in order: a function configured in the
project's Library, the project's local index file in ``lib/``, and the
shared remote index (downloaded once into the user cache).
"""

import logging
from typing import Callable, Iterator, Mapping, Optional, Union

from modbuild.project.models import MAVEN_CENTRAL, Coordinate

logger = logging.getLogger(__name__)

MODULE_MAVEN_PROPERTIES = "module-maven.properties"
MODULE_VERSION_PROPERTIES = "module-version.properties"
MODULE_URI_PROPERTIES = "module-uri.properties"

LookupSource = Union[Callable[[str], Optional[str]], Mapping[str, str]]


class Lookup:
    """Ordered chain of module-name lookups; the first hit wins.

    Args:
        name: What is being looked up, for log messages.
        sources: Functions or mappings asked in order.
    """

    def __init__(self, name: str, *sources: LookupSource) -> None:
        self.name = name
        self._sources = list(sources)

    def find(self, module: str) -> Optional[str]:
        for source in self._sources:
            if isinstance(source, Mapping):
                value = source.get(module)
            else:
                value = source(module)
            if value:
                logger.debug(f"{self.name} of {module} -> {value}")
                return value.strip()
        return None


class LazyMapping(Mapping[str, str]):
    """Mapping loaded on first access.

    Used for the remote index files, which are only downloaded when a local
    source cannot answer.
    """

    def __init__(self, loader: Callable[[], Mapping[str, str]]) -> None:
        self._loader = loader
        self._data: Optional[Mapping[str, str]] = None

    def _load(self) -> Mapping[str, str]:
        if self._data is None:
            self._data = self._loader()
        return self._data

    def __getitem__(self, key: str) -> str:
        return self._load()[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._load())

    def __len__(self) -> int:
        return len(self._load())


def repository_uri(
    coordinate: Coordinate,
    repository_mapper: Callable[[str, str], str],
    mirror: Optional[str] = None,
) -> str:
    """Download URI of a coordinate.

    The Library's repository mapper picks the repository base for the
    coordinate's group and version; a mirror, if configured, replaces Maven
    Central.
    """
    repository = repository_mapper(coordinate.group, coordinate.version)
    if mirror and repository.rstrip("/") == MAVEN_CENTRAL:
        repository = mirror
    return coordinate.to_uri(repository)
