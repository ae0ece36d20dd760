from abc import ABC, abstractmethod
from typing import List

from litdedup.models.record import Record


class CatalogProvider(ABC):
    """Abstract base class for external bibliographic catalogs

    Providers resolve identifiers from id-list import sources into records.
    """

    @abstractmethod
    async def fetch_by_id(self, identifier: str) -> Record:
        """Fetch one record by catalog identifier (PMID or DOI)

        Args:
            identifier: Catalog identifier

        Returns:
            Unpersisted Record with source external-catalog

        Raises:
            CatalogNotFoundError: If the identifier is unknown
            CatalogError: If the request fails
        """
        pass

    @abstractmethod
    async def search(self, query: str, max_results: int = 20) -> List[Record]:
        """Search the catalog

        Raises:
            CatalogError: If the search fails
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging and identification"""
        pass
