"""Registry mapping schema extraction methods to extractor classes."""

from typing import Dict, List, Optional, Type

import structlog

from dealmonitor.scrapers.base import BaseExtractor
from dealmonitor.scrapers.adapters import (
    HtmlDomExtractor,
    JsonLdExtractor,
    MetaTagsExtractor,
    ScriptJsonExtractor,
)


logger = structlog.get_logger(__name__)


class ExtractorFactory:
    """Creates extractor instances by ``extraction.method``.

    ``api-json`` has no HTML extractor: its payload is already JSON and is
    handed to the schema engine directly.
    """

    def __init__(self):
        self._registry: Dict[str, Type[BaseExtractor]] = {}
        self._instances: Dict[str, BaseExtractor] = {}

    def register_extractor(self, method: str, extractor_class: Type[BaseExtractor]) -> None:
        """Register an extractor class for a method.

        Args:
            method: Schema extraction method (e.g., "json-ld")
            extractor_class: Class inheriting from BaseExtractor
        """
        if not issubclass(extractor_class, BaseExtractor):
            raise ValueError(f"Extractor class must inherit from BaseExtractor: {extractor_class}")

        self._registry[method] = extractor_class
        self._instances.pop(method, None)
        logger.debug("extractor_registered", method=method)

    def get_extractor(self, method: str) -> Optional[BaseExtractor]:
        """Return the (cached) extractor for a method, or None if unknown."""
        if method in self._instances:
            return self._instances[method]

        extractor_class = self._registry.get(method)
        if not extractor_class:
            logger.warning("extractor_not_found", method=method)
            return None

        extractor = extractor_class()
        self._instances[method] = extractor
        return extractor

    def get_registered_methods(self) -> List[str]:
        return list(self._registry.keys())


def register_default_extractors(factory: ExtractorFactory) -> None:
    for extractor_class in (
        ScriptJsonExtractor,
        JsonLdExtractor,
        MetaTagsExtractor,
        HtmlDomExtractor,
    ):
        factory.register_extractor(extractor_class.method, extractor_class)


# Global factory instance
extractor_factory = ExtractorFactory()
register_default_extractors(extractor_factory)


def get_extractor_factory() -> ExtractorFactory:
    """Get the global extractor factory instance."""
    return extractor_factory
