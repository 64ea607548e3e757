"""
Tests for LocalCardParser class.

Tests the parsing of OCR text into structured card fields.
"""

import pytest

from cardscan import LocalCardParser, ParseSource


class TestLocalCardParser:
    """Test cases for LocalCardParser."""

    @pytest.fixture
    def parser(self):
        """Create parser instance."""
        return LocalCardParser()

    def test_well_formed_chinese_card(self, parser, card_text):
        """Test every field of a complete card is found."""
        result = parser.extract(card_text)

        assert result.source is ParseSource.LOCAL
        assert result.name == "王小明"
        assert result.job_title == "資深軟體工程師"
        assert result.company == "科技創新股份有限公司"
        assert "02-2345-6789" in result.phone
        assert "0912-345-678" in result.mobile
        assert result.email == "xiaoming.wang@techcorp.com"
        assert result.confidence > 0.7

    @pytest.mark.parametrize("text", [
        (
            "王小明\n"
            "資深軟體工程師\n"
            "科技創新股份有限公司\n"
            "電話: 02-2345-6789\n"
            "手機: 0912-345-678\n"
            "Email: xiaoming.wang@techcorp.com\n"
            "地址: 台北市信義區信義路五段7號"
        ),
        (
            "John Smith\n"
            "Senior Software Engineer\n"
            "Acme Solutions Inc.\n"
            "Tel: +1 415 555 0132\n"
            "Mobile: +1 415 555 0199\n"
            "john.smith@acme.com\n"
            "Address: 100 Market Street, San Francisco, CA 94105"
        ),
    ], ids=["chinese", "latin"])
    def test_seven_field_card(self, parser, text):
        """Test a card with every contact field on its own line."""
        result = parser.extract(text)

        for name in ("name", "job_title", "company", "phone", "mobile", "email", "address"):
            assert getattr(result, name), f"{name} missing"
        assert result.confidence > 0.7

    def test_empty_text(self, parser):
        """Test empty input gives an empty candidate."""
        result = parser.extract("")

        assert result.source is ParseSource.LOCAL
        assert result.confidence == 0.0
        assert result.filled_fields() == []

    def test_english_card(self, parser):
        """Test a Latin-script card."""
        text = (
            "John Smith\n"
            "Senior Software Engineer\n"
            "Acme Solutions Inc.\n"
            "Tel: +1 415 555 0132\n"
            "john.smith@acme.com\n"
            "www.acme.com"
        )
        result = parser.extract(text)

        assert result.name == "John Smith"
        assert result.job_title == "Senior Software Engineer"
        assert result.company == "Acme Solutions Inc."
        assert result.email == "john.smith@acme.com"
        assert result.website == "www.acme.com"
        assert result.phone is not None

    def test_email_domain_not_taken_as_website(self, parser):
        """Test the domain inside an email is not a website."""
        result = parser.extract("王小明\nxiaoming@techcorp.com")

        assert result.email == "xiaoming@techcorp.com"
        assert result.website is None

    def test_first_of_multiple_values_kept(self, parser):
        """Test the first phone and email win."""
        text = (
            "李四\n"
            "電話: 02-2700-1234\n"
            "電話: 04-2222-3333\n"
            "li@first.com\n"
            "li@second.com"
        )
        result = parser.extract(text)

        assert result.name == "李四"
        assert result.phone == "02-2700-1234"
        assert result.email == "li@first.com"

    def test_fax_number_ignored(self, parser):
        """Test fax numbers are not kept as phones."""
        result = parser.extract("王小明\n傳真: 02-2345-0000")

        assert result.phone is None
        assert result.mobile is None

    def test_spaced_cjk_name_joined(self, parser):
        """Test OCR spacing inside a CJK name is removed."""
        result = parser.extract("陳 大 文\n經理")

        assert result.name == "陳大文"
        assert result.job_title == "經理"

    def test_labelled_address(self, parser):
        """Test an address label wins over unit heuristics."""
        result = parser.extract("王小明\n地址: 台北市信義區信義路五段7號")

        assert result.address == "台北市信義區信義路五段7號"

    def test_unlabelled_address(self, parser):
        """Test address found by unit tokens."""
        result = parser.extract("王小明\n台北市大安區復興南路一段100號5樓")

        assert result.address == "台北市大安區復興南路一段100號5樓"
        assert result.name == "王小明"

    def test_partial_card_below_threshold(self, parser):
        """Test a sparse card scores below the default threshold."""
        result = parser.extract("張三豐\n0912-345-678")

        assert result.name == "張三豐"
        assert result.mobile == "0912-345-678"
        assert result.confidence < 0.7

    def test_longer_cleaner_text_scores_higher(self, parser, card_text):
        """Test confidence ordering: full card > sparse card > single character."""
        full = parser.extract(card_text).confidence
        sparse = parser.extract("王五").confidence
        single = parser.extract("王").confidence

        assert full > sparse > 0.0
        assert single < 0.5

    def test_noise_lowers_confidence(self, parser):
        """Test suspicious characters lower the score."""
        clean = parser.extract("王小明\n經理\n0912-345-678").confidence
        noisy = parser.extract("王小明\n經理\n0912-345-678\n~~~~^^^^$$$$").confidence

        assert noisy < clean

    def test_confidence_bounds(self, parser):
        """Test confidence always stays in [0, 1]."""
        samples = ["", "a", "%%%%%%%%", "王小明", "x" * 500]

        for text in samples:
            confidence = parser.extract(text).confidence
            assert 0.0 <= confidence <= 1.0, f"Failed for: {text!r}"
