"""npm registry client for npmaudit.

Fetches the abbreviated ("corgi") metadata document of a package and
reduces it to the three things an audit needs: the latest version, the
version list newest first, and the package's npmjs.com page.

Typical usage::

    async with HTTPClient() as http:
        registry = NpmRegistryClient(http)
        meta = await registry.fetch_metadata("left-pad")
        print(meta.latest_version, meta.versions_newest_first[:3])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List
from urllib.parse import quote

from npmaudit.constants import (
    ABBREVIATED_METADATA_ACCEPT,
    DEFAULT_REGISTRY_URL,
    NPM_PACKAGE_PAGE,
)
from npmaudit.exceptions import NetworkError, RegistryError
from npmaudit.utils.http import HTTPClient
from npmaudit.utils.logger import get_logger

logger = get_logger("registry")

__all__ = ["NpmRegistryClient", "RegistryMetadata", "package_page_url"]


@dataclass(frozen=True)
class RegistryMetadata:
    """The parts of a registry document used by an audit.

    Attributes:
        latest_version: ``dist-tags.latest``.
        versions_newest_first: Every published version, most recent first.
        page: The package's page on npmjs.com.
    """

    latest_version: str
    versions_newest_first: List[str] = field(default_factory=list)
    page: str = ""


class NpmRegistryClient:
    """Read-only client for the public npm registry.

    Args:
        http_client: A pre-configured :class:`HTTPClient` (owns the
            connection pool, retries and concurrency cap).
        registry_url: Registry base URL.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        registry_url: str = DEFAULT_REGISTRY_URL,
    ) -> None:
        self.http_client = http_client
        self.registry_url = registry_url.rstrip("/")

    def metadata_url(self, name: str) -> str:
        """Return the registry URL for ``name``.

        The slash of a scoped name is encoded (``@types%2Fnode``).
        """
        return f"{self.registry_url}/{quote(name, safe='@')}"

    async def fetch_metadata(self, name: str) -> RegistryMetadata:
        """Fetch and parse metadata for ``name``.

        Raises:
            RegistryError: The request failed or the document is malformed.
        """
        url = self.metadata_url(name)
        logger.debug("Fetching %s", url)

        try:
            document = await self.http_client.get_json(
                url,
                package_name=name,
                headers={"Accept": ABBREVIATED_METADATA_ACCEPT},
            )
        except RegistryError:
            raise
        except NetworkError as exc:
            raise RegistryError(
                f"Registry request for '{name}' failed: {exc.message}",
                package_name=name,
                url=exc.url or url,
                status_code=exc.status_code,
            ) from exc

        return self._parse_metadata(name, document)

    @staticmethod
    def _parse_metadata(name: str, document: Dict[str, Any]) -> RegistryMetadata:
        """Extract latest version and versions from a registry document.

        The ``versions`` object is keyed in publish order, oldest first.
        """
        dist_tags = document.get("dist-tags")
        latest = dist_tags.get("latest") if isinstance(dist_tags, dict) else None
        if not isinstance(latest, str) or not latest:
            raise RegistryError(
                f"Registry document for '{name}' has no 'dist-tags.latest'",
                package_name=name,
            )

        versions = document.get("versions", {})
        if not isinstance(versions, dict):
            raise RegistryError(
                f"Registry document for '{name}' has malformed 'versions'",
                package_name=name,
            )

        return RegistryMetadata(
            latest_version=latest,
            versions_newest_first=list(reversed(list(versions.keys()))),
            page=package_page_url(name),
        )


def package_page_url(name: str) -> str:
    """Return the npmjs.com page for ``name``."""
    return NPM_PACKAGE_PAGE.format(package=name)
