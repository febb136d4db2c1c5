"""
Destination ERP client: one POST per transformed record
"""

import httpx
from typing import Dict, Any, Optional
from clients.base import DestinationClient
from clients.http import send_with_retry, bearer_headers
from schemas.migration import DestinationConfig, WriteResult
from core.exceptions import NetworkError, RateLimitError, WriteSweepError
import logging

logger = logging.getLogger(__name__)


class HTTPDestinationClient(DestinationClient):
    """
    Write records to the destination REST endpoint.

    Failure boundary:
    - Connection failures and timeouts (after retries), any other transport
      or URL error, and HTTP 401/403 mean no record can be written:
      WriteSweepError
    - Any other non-2xx response rejects only this record and is
      reported in-band
    """

    def __init__(self, max_retries: Optional[int] = None):
        self.max_retries = max_retries

    async def write_one(self, record: Dict[str, Any], config: DestinationConfig) -> WriteResult:
        record_id = record.get("id", record.get("entityid"))
        record_id = str(record_id) if record_id is not None else None

        try:
            async with httpx.AsyncClient(timeout=config.timeout) as client:
                response = await send_with_retry(
                    client,
                    "POST",
                    config.endpoint,
                    max_retries=self.max_retries,
                    headers=bearer_headers(config.api_key),
                    json=record,
                )
        except NetworkError as e:
            raise WriteSweepError(
                "Destination unreachable",
                context={"endpoint": config.endpoint, "record_id": record_id},
                original_exception=e
            )
        except RateLimitError as e:
            return WriteResult(record_id=record_id, success=False, detail=e.message)
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise WriteSweepError(
                f"Destination request failed: {type(e).__name__}",
                context={"endpoint": config.endpoint, "record_id": record_id},
                original_exception=e
            )

        if response.status_code in (401, 403):
            raise WriteSweepError(
                f"Destination rejected credentials (HTTP {response.status_code})",
                context={"endpoint": config.endpoint, "status_code": response.status_code}
            )

        if response.status_code >= 400:
            logger.warning(f"Destination rejected record {record_id}: HTTP {response.status_code}")
            return WriteResult(
                record_id=record_id,
                success=False,
                detail=f"HTTP {response.status_code}: {response.text[:500]}"
            )

        try:
            detail = response.json()
        except ValueError:
            detail = response.text
        return WriteResult(record_id=record_id, success=True, detail=detail)
