"""
Source ledger client over a paginated REST API.
"""

import httpx
from typing import List, Dict, Any, Optional
from clients.base import SourceClient
from clients.http import send_with_retry, bearer_headers
from models.base import EntityType
from core.config import settings
from core.exceptions import FetchError, AuthenticationError
import logging

logger = logging.getLogger(__name__)


class HTTPSourceClient(SourceClient):
    """
    Fetch billing records from `{base_url}/{entity_type}`.

    Supported response shapes per page:
    - a bare JSON list of records (a short page ends pagination)
    - an object with `data` or `results` and an optional `has_next` flag
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        page_size: int = 100,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None
    ):
        self.base_url = (base_url or settings.SOURCE_API_URL).rstrip("/")
        self.api_key = api_key or settings.SOURCE_API_KEY
        self.page_size = page_size
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.max_retries = max_retries

    async def fetch(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        entity_type = EntityType(entity_type)
        url = f"{self.base_url}/{entity_type.value}"
        all_records: List[Dict[str, Any]] = []
        page = 1

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                while True:
                    logger.info(f"Fetching page {page} of {entity_type.value} from {url}")
                    response = await send_with_retry(
                        client,
                        "GET",
                        url,
                        max_retries=self.max_retries,
                        headers=bearer_headers(self.api_key),
                        params={"page": page, "per_page": self.page_size},
                    )
                    self._raise_for_status(response, url)

                    try:
                        data = response.json()
                    except ValueError as e:
                        raise FetchError(
                            "Failed to parse JSON response",
                            context={"source_url": url, "page": page, "response_body": response.text[:500]},
                            original_exception=e
                        )

                    if isinstance(data, list):
                        records = data
                    elif isinstance(data, dict):
                        records = data.get("data", data.get("results", []))
                    else:
                        records = []

                    if not records:
                        break
                    all_records.extend(records)

                    if isinstance(data, dict):
                        if not data.get("has_next", False):
                            break
                    elif len(records) < self.page_size:
                        break

                    page += 1

        except FetchError:
            raise

        except Exception as e:
            raise FetchError(
                "Unexpected error during fetch",
                context={
                    "entity_type": entity_type.value,
                    "source_url": url,
                    "page": page,
                    "records_fetched": len(all_records),
                },
                original_exception=e
            )

        logger.info(f"Fetched {len(all_records)} {entity_type.value} ({page} pages)")
        return all_records

    @staticmethod
    def _raise_for_status(response: httpx.Response, url: str):
        status = response.status_code
        if status < 400:
            return
        context = {"source_url": url, "status_code": status, "response_body": response.text[:500]}
        if status in (401, 403):
            raise AuthenticationError(f"Authentication failed for {url}", context=context)
        raise FetchError(f"Source returned HTTP {status}", context=context)
