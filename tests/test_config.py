"""
Tests for configuration loading.
"""

from config import Config, DevelopmentConfig, TestingConfig, get_config
from cardscan import PipelineConfig


class TestConfig:
    """Test cases for Config and PipelineConfig."""

    def test_get_config(self):
        """Test configuration lookup by name."""
        assert get_config("testing") is TestingConfig
        assert get_config("unknown") is DevelopmentConfig

    def test_allowed_file(self):
        """Test extension filtering."""
        assert Config.is_allowed_file("card.JPG")
        assert Config.is_allowed_file("scan.webp")
        assert not Config.is_allowed_file("card.txt")
        assert not Config.is_allowed_file("noextension")

    def test_pipeline_config_from_config(self):
        """Test pipeline settings are copied from the app config."""
        pipeline_config = PipelineConfig.from_config(TestingConfig)

        assert pipeline_config.confidence_threshold == TestingConfig.CONFIDENCE_THRESHOLD
        assert pipeline_config.max_image_bytes == TestingConfig.MAX_CONTENT_LENGTH
        assert pipeline_config.batch_concurrency == TestingConfig.BATCH_CONCURRENCY
        assert pipeline_config.reject_active_injection is TestingConfig.REJECT_ACTIVE_INJECTION
        assert pipeline_config.ocr_cache_size == TestingConfig.OCR_CACHE_SIZE
        assert pipeline_config.ocr_cache_ttl == TestingConfig.OCR_CACHE_TTL

    def test_api_status(self):
        """Test API key status report."""
        assert TestingConfig.get_api_status()["ai_parsing_enabled"] is False
