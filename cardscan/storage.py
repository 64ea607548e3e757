"""
Persistence gateway contract and an in-memory implementation.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .errors import StorageFailure, StorageSpaceExceeded
from .models import BatchFailure, BatchResult, BusinessCard, utcnow

logger = logging.getLogger(__name__)


class PersistenceGateway(ABC):
    """Stores finished cards and assigns their identity."""

    @abstractmethod
    async def save_card(self, card: BusinessCard) -> BusinessCard:
        """Persist a card and return it with its permanent id.

        Raises:
            StorageSpaceExceeded: The store is full
            ConnectionFailure: The backend could not be reached
        """

    async def save_cards(self, cards: Sequence[BusinessCard]) -> BatchResult:
        """Persist several cards; one failure does not stop the others."""
        result = BatchResult()
        for index, card in enumerate(cards):
            try:
                result.successful.append(await self.save_card(card))
            except StorageFailure as e:
                logger.warning(f"Failed to save card {index}: {e}")
                result.failed.append(BatchFailure(index=index, item_id=card.id, error=e))
            except Exception as e:
                logger.error(f"Failed to save card {index} unexpectedly: {e}", exc_info=True)
                result.failed.append(
                    BatchFailure(index=index, item_id=card.id, error=StorageFailure(f"Persistence failed: {e}"))
                )
        return result


class InMemoryCardStore(PersistenceGateway):
    """Process-local card store, used by the HTTP API and tests."""

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity
        self._cards: Dict[str, BusinessCard] = {}

    async def save_card(self, card: BusinessCard) -> BusinessCard:
        if self.capacity is not None and len(self._cards) >= self.capacity:
            raise StorageSpaceExceeded(
                f"Card store is full ({self.capacity} cards)",
                details={"capacity": self.capacity},
            )
        now = utcnow()
        stored = replace(card, id=uuid.uuid4().hex, created_at=now, updated_at=now)
        self._cards[stored.id] = stored
        logger.info(f"Saved card {stored.id}")
        return stored

    def get_card(self, card_id: str) -> Optional[BusinessCard]:
        return self._cards.get(card_id)

    def list_cards(self) -> List[BusinessCard]:
        return sorted(self._cards.values(), key=lambda c: c.created_at)

    def count(self) -> int:
        return len(self._cards)
