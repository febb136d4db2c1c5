"""
Abstract collaborators consumed by the migration pipeline
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any
from models.base import EntityType
from schemas.migration import DestinationConfig, WriteResult


class SourceClient(ABC):
    """Reads raw billing records from the source ledger"""

    @abstractmethod
    async def fetch(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        """
        Fetch every record of the given entity type.

        Raises:
            FetchError: If the source cannot deliver the records
        """
        pass


class CompletionClient(ABC):
    """Answers a natural-language prompt with a short text reply"""

    @abstractmethod
    async def complete(self, prompt: str, max_tokens: int) -> str:
        """
        Return the model's reply to `prompt`.

        Raises:
            ClassificationError: On timeout, quota, network or malformed reply
        """
        pass


class DestinationClient(ABC):
    """Persists transformed records in the destination ERP"""

    @abstractmethod
    async def write_one(self, record: Dict[str, Any], config: DestinationConfig) -> WriteResult:
        """
        Write a single transformed record.

        A rejected record is reported in-band with `success=False`.

        Raises:
            WriteSweepError: Only when the destination itself is unreachable
        """
        pass
