"""
Shared fixtures for the test suite.
"""

import pytest

from cardscan import CardPipeline, InMemoryCardStore, PipelineConfig
from fakes import CARD_TEXT, PNG_BYTES, FakeOCR


@pytest.fixture
def card_text():
    """Well-formed Traditional Chinese card text."""
    return CARD_TEXT


@pytest.fixture
def png_bytes():
    """Bytes carrying a PNG signature."""
    return PNG_BYTES


@pytest.fixture
def store():
    """Empty in-memory card store."""
    return InMemoryCardStore()


@pytest.fixture
def fake_ocr():
    """OCR adapter returning the well-formed card text."""
    return FakeOCR()


@pytest.fixture
def pipeline(fake_ocr, store):
    """Pipeline with fake OCR, no AI parser, and an in-memory store."""
    return CardPipeline(ocr=fake_ocr, store=store, config=PipelineConfig())
