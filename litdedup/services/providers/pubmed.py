import aiohttp
import asyncio
import re
from typing import Any, Dict, List, Optional
import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from litdedup.services.providers.base import CatalogProvider
from litdedup.models.record import Record, RecordSource, utc_timestamp
from litdedup.observability.metrics import track_catalog_request
from litdedup.utils.author_utils import normalize_authors
from litdedup.utils.exceptions import (
    CatalogError,
    CatalogNotFoundError,
    CatalogRateLimitError,
)
from litdedup.utils.rate_limiter import RateLimiter

logger = structlog.get_logger()

PMID_PATTERN = re.compile(r"^\d+$")


class PubMedProvider(CatalogProvider):
    """Resolve PMIDs and DOIs through NCBI E-utilities (JSON mode)"""

    BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"

    def __init__(
        self,
        api_key: Optional[str] = None,
        email: Optional[str] = None,
        tool: str = "litdedup",
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.api_key = api_key
        self.email = email
        self.tool = tool
        # NCBI ceiling: 3 requests/second, 10 with an API key
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_second=10 if api_key else 3
        )

        if not api_key:
            logger.warning("pubmed_api_key_missing", requests_per_second=3)

    @property
    def name(self) -> str:
        return "pubmed"

    async def fetch_by_id(self, identifier: str) -> Record:
        """Fetch a record by PMID, or by DOI via an esearch lookup"""
        identifier = identifier.strip()

        if PMID_PATTERN.match(identifier):
            pmid = identifier
        else:
            pmids = await self._esearch(f"{identifier}[doi]", max_results=1)
            if not pmids:
                raise CatalogNotFoundError(f"DOI not found in PubMed: {identifier}")
            pmid = pmids[0]

        records = await self._esummary([pmid])
        if not records:
            raise CatalogNotFoundError(f"PMID not found in PubMed: {identifier}")
        return records[0]

    async def search(self, query: str, max_results: int = 20) -> List[Record]:
        if not query or not query.strip():
            raise ValueError("Query cannot be empty")

        pmids = await self._esearch(query.strip(), max_results=min(max_results, 10000))
        if not pmids:
            return []

        records = await self._esummary(pmids)
        for record in records:
            record.metadata["search_query"] = query

        logger.info("pubmed_search_complete", query=query, count=len(records))
        return records

    async def _esearch(self, term: str, max_results: int) -> List[str]:
        data = await self._get(
            "esearch.fcgi",
            {"db": "pubmed", "term": term, "retmax": str(max_results)},
        )
        return list(data.get("esearchresult", {}).get("idlist", []))

    async def _esummary(self, pmids: List[str]) -> List[Record]:
        data = await self._get(
            "esummary.fcgi", {"db": "pubmed", "id": ",".join(pmids)}
        )
        return self._parse_summaries(data)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((aiohttp.ClientError, CatalogRateLimitError)),
        reraise=True,
    )
    async def _get(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        query = {**params, "retmode": "json", "tool": self.tool}
        if self.api_key:
            query["api_key"] = self.api_key
        if self.email:
            query["email"] = self.email

        await self.rate_limiter.acquire(requester_id=self.name)

        with track_catalog_request(self.name):
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.get(
                        f"{self.BASE_URL}/{endpoint}",
                        params=query,
                        timeout=aiohttp.ClientTimeout(total=30),
                    ) as response:

                        if response.status == 429:
                            raise CatalogRateLimitError(
                                "PubMed rate limit exceeded",
                                retry_after=_retry_after(response.headers.get("Retry-After")),
                            )

                        if response.status >= 500:
                            raise aiohttp.ClientError(f"Server error: {response.status}")

                        if response.status != 200:
                            text = await response.text()
                            logger.error(
                                "pubmed_api_error", status=response.status, body=text[:200]
                            )
                            raise CatalogError(f"PubMed request failed: {response.status}")

                        data = await response.json(content_type=None)

            except asyncio.TimeoutError:
                logger.error("pubmed_timeout", endpoint=endpoint)
                raise CatalogError("PubMed request timed out")

        return data

    def _parse_summaries(self, data: Dict[str, Any]) -> List[Record]:
        """Convert an esummary JSON payload into records"""
        result = data.get("result") or {}
        uids = result.get("uids", [])

        records = []
        for uid in uids:
            item = result.get(uid)
            if not item or item.get("error"):
                continue
            if not (item.get("title") or "").strip():
                # Untitled summaries cannot be told apart by the title tiers
                logger.warning("pubmed_summary_untitled", pmid=uid)
                continue

            try:
                records.append(self._summary_to_record(uid, item))
            except Exception as e:
                logger.warning("pubmed_summary_parse_failed", pmid=uid, error=str(e))

        return records

    def _summary_to_record(self, uid: str, item: Dict[str, Any]) -> Record:
        return Record(
            pmid=uid,
            external_id=uid,
            doi=_article_id(item, "doi"),
            title=item["title"].strip(),
            authors=normalize_authors(item.get("authors")),
            journal=item.get("fulljournalname") or item.get("source") or None,
            publication_date=item.get("pubdate") or None,
            url=f"https://pubmed.ncbi.nlm.nih.gov/{uid}/",
            source=RecordSource.EXTERNAL_CATALOG,
            metadata={
                "catalog": self.name,
                "pmc_id": _article_id(item, "pmc"),
                "language": (item.get("lang") or [None])[0],
                "publication_types": item.get("pubtype") or [],
                "fetched_at": utc_timestamp(),
            },
        )


def _article_id(item: Dict[str, Any], idtype: str) -> Optional[str]:
    for article_id in item.get("articleids", []) or []:
        if article_id.get("idtype") == idtype and article_id.get("value"):
            return article_id["value"]
    return None


def _retry_after(value: Optional[str]) -> Optional[float]:
    # Only the delta-seconds form is honoured
    try:
        return float(value) if value else None
    except ValueError:
        return None
