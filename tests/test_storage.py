"""
Tests for the in-memory card store.
"""

import asyncio

import pytest

from cardscan import BusinessCard, InMemoryCardStore, StorageFailure, StorageSpaceExceeded


def make_card(name="王小明", card_id="temp-1"):
    return BusinessCard(id=card_id, name=name, email="wang@example.com")


class BrokenBackendStore(InMemoryCardStore):
    """Store whose backend crashes on one particular card."""

    def __init__(self, broken_name):
        super().__init__()
        self.broken_name = broken_name

    async def save_card(self, card):
        if card.name == self.broken_name:
            raise RuntimeError("disk gone")
        return await super().save_card(card)


class TestInMemoryCardStore:
    """Test cases for InMemoryCardStore."""

    def test_save_assigns_id(self, store):
        """Test saved cards get a permanent id and timestamps."""
        saved = asyncio.run(store.save_card(make_card()))

        assert saved.id != "temp-1"
        assert saved.name == "王小明"
        assert saved.created_at == saved.updated_at
        assert store.get_card(saved.id) == saved
        assert store.count() == 1

    def test_capacity(self):
        """Test a full store refuses new cards."""
        store = InMemoryCardStore(capacity=1)
        asyncio.run(store.save_card(make_card()))

        with pytest.raises(StorageSpaceExceeded):
            asyncio.run(store.save_card(make_card(name="李四")))

    def test_save_cards_isolates_failures(self):
        """Test one failed save does not stop the rest."""
        store = InMemoryCardStore(capacity=2)
        cards = [make_card(name=n, card_id=f"temp-{i}") for i, n in enumerate(["王小明", "李四", "張三"])]

        result = asyncio.run(store.save_cards(cards))

        assert len(result.successful) == 2
        assert len(result.failed) == 1
        assert result.failed[0].index == 2
        assert result.failed[0].item_id == "temp-2"

    def test_save_cards_wraps_unexpected_errors(self):
        """Test a backend crash on one card is recorded as a storage failure."""
        store = BrokenBackendStore(broken_name="李四")
        cards = [make_card(name=n, card_id=f"temp-{i}") for i, n in enumerate(["王小明", "李四", "張三"])]

        result = asyncio.run(store.save_cards(cards))

        assert len(result.successful) + len(result.failed) == 3
        assert [card.name for card in result.successful] == ["王小明", "張三"]
        assert result.failed[0].index == 1
        assert isinstance(result.failed[0].error, StorageFailure)
        assert "disk gone" in result.failed[0].error.message

    def test_list_and_missing(self, store):
        """Test listing and lookups of unknown ids."""
        asyncio.run(store.save_card(make_card()))

        assert len(store.list_cards()) == 1
        assert store.get_card("nope") is None


class TestBusinessCard:
    """Test cases for the BusinessCard record."""

    def test_name_required(self):
        """Test an empty name is refused."""
        with pytest.raises(ValueError):
            BusinessCard(id="x", name="  ")

    def test_to_dict(self):
        """Test serialization includes all fields."""
        data = make_card().to_dict()

        assert data["name"] == "王小明"
        assert data["mobile"] is None
        assert "created_at" in data
