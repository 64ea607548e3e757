"""
Rule-based business card parser.

Works on recognized text alone: no network, no model. Lines are classified
in a fixed order (contact lines, address, company, title, name) and a line
claimed by one rule is not offered to the later ones.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .models import ParsedCandidate, ParseSource
from .normalizer import normalize_text, split_lines

logger = logging.getLogger(__name__)


# =========================
# PATTERN TABLES
# =========================

CJK = "\u4e00-\u9fff"

SURNAMES = set(
    "王李張劉陳楊黃趙吳周徐孫馬朱胡郭何高林鄭謝羅梁宋唐許韓馮鄧曹彭曾蕭田董袁潘於蔣蔡余杜葉程蘇魏呂丁"
    "任沈姚盧傅鍾姜崔譚廖范汪陸金石戴賈韋夏付方鄒熊白孟秦邱江尹薛閆段雷侯龍史陶黎賀顧毛郝龔邵萬錢嚴覃"
    "武戚莫孔向湯柯翁施洪游簡賴温溫涂"
)
COMPOUND_SURNAMES = ("歐陽", "司馬", "上官", "諸葛", "東方", "皇甫", "尉遲", "公孫", "張簡", "范姜")

CJK_COMPANY_SUFFIX = re.compile(r"(股份有限公司|有限公司|公司|企業社|企業|集團|工作室|事務所|銀行|協會|基金會|科技$)")
LATIN_COMPANY_SUFFIX = re.compile(
    r"\b(Inc|LLC|L\.L\.C|Ltd|Limited|Corp|Corporation|Company|Co|GmbH|PLC|LLP|Holdings|Group)\b\.?",
    re.IGNORECASE,
)

CJK_TITLE_KEYWORDS = re.compile(
    r"(董事長|總經理|副總|協理|經理|總監|主管|專員|工程師|設計師|顧問|分析師|總裁|執行長|董事|秘書|助理|"
    r"主任|組長|課長|處長|創辦人|負責人|業務代表|律師|會計師|醫師|教授)"
)
LATIN_TITLE_KEYWORDS = re.compile(
    r"\b(CEO|CTO|CFO|COO|CIO|CMO|VP|Vice President|President|Founder|Co-Founder|Chairman|Director|"
    r"Manager|Engineer|Developer|Designer|Consultant|Analyst|Specialist|Executive|Supervisor|Officer|"
    r"Architect|Head of|Partner|Associate|Assistant|Coordinator|Representative|Agent|Attorney|"
    r"Accountant|Secretary)\b",
    re.IGNORECASE,
)

ADDRESS_LABEL = re.compile(r"^(?:地址|住址|公司地址|Address|Addr\.?)\s*[:：]?\s*(.*)$", re.IGNORECASE)
ADDRESS_UNITS = re.compile(
    r"\d+\s*(?:號|樓|巷|弄|室|F\b)"
    r"|\b(?:No|Suite|Ste|Room|Rm|Floor|Fl)\.?\s*\d+"
    r"|\d+\s+\w+(?:\s+\w+)?\s+(?:Street|St|Road|Rd|Avenue|Ave|Boulevard|Blvd|Lane|Ln|Drive|Dr)\b"
    r"|(?:路|街|大道).*\d",
    re.IGNORECASE,
)

MOBILE_LABEL = re.compile(r"(手機|行動|Mobile|Cell|\bM\s*[:：])", re.IGNORECASE)
FAX_LABEL = re.compile(r"(傳真|Fax|\bF\s*[:：])", re.IGNORECASE)

TLDS = (
    "com|net|org|io|co|tw|cn|jp|hk|sg|us|uk|de|fr|biz|info|ai|dev|app|edu|gov|me|tech|asia"
)

# Characters that are ordinary on a card and never count as noise
CARD_PUNCTUATION = set("@.-+()/:,&'#|_：，、（）．·")
REPEATED_PUNCTUATION = re.compile(r"([^\w\s])\1{2,}")

FIELD_SLOTS = 7
LENGTH_SATURATION = 60
NAME_PATTERN_BONUS = 0.05


@dataclass
class _LineState:
    """Lines still available to later rules."""

    lines: List[str]
    claimed: Set[int] = field(default_factory=set)

    def free(self):
        for index, line in enumerate(self.lines):
            if index not in self.claimed:
                yield index, line

    def claim(self, index: int) -> None:
        self.claimed.add(index)


# =========================
# PARSER
# =========================

class LocalCardParser:
    """Deterministic field extractor for Chinese and Latin business cards."""

    def __init__(self):
        self.patterns = {
            "email": re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
            "mobile": re.compile(
                r"(?<![\d+])(?:\+?886[\s-]?9\d{2}|09\d{2})[\s-]?\d{3}[\s-]?\d{3}(?!\d)"
            ),
            "landline": re.compile(
                r"(?<![\d+])(?:\+?886[\s-]?\(?[2-8]\)?|\(0[2-8]\)|0[2-8])[\s-]?\d{3,4}[\s-]?\d{4}(?!\d)"
            ),
            "generic_phone": re.compile(r"(?<![\w+])\+?\(?\d[\d\s().-]{6,}\d(?!\d)"),
            "url": re.compile(r"(?:https?://|www\.)[^\s,;，]+", re.IGNORECASE),
            "domain": re.compile(
                rf"(?<![@\w.-])(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+(?:{TLDS})(?:/[^\s,;]*)?(?![\w-])",
                re.IGNORECASE,
            ),
            "cjk_name": re.compile(rf"^[{CJK}]{{2,4}}$"),
            "latin_name": re.compile(r"^[A-Z][A-Za-z'’-]+(?:\s+[A-Z][A-Za-z'’.-]*){1,3}$"),
        }

    # =========================
    # PUBLIC API
    # =========================

    def extract(self, text: str) -> ParsedCandidate:
        """Extract card fields from recognized text.

        Args:
            text: Raw or normalized OCR text

        Returns:
            ParsedCandidate with ``source=local``; empty input gives an
            all-null candidate with confidence 0.0
        """
        normalized = normalize_text(text or "")
        if not normalized:
            return ParsedCandidate(source=ParseSource.LOCAL, confidence=0.0)

        state = _LineState(split_lines(normalized))
        logger.debug(f"Parsing {len(state.lines)} lines")

        fields = self._extract_contact_lines(state)
        fields["address"] = self._extract_address(state)
        fields["company"] = self._extract_company(state)
        fields["job_title"] = self._extract_title(state)
        name, name_matched = self._extract_name(state)
        fields["name"] = name
        if not fields["job_title"] and name:
            fields["job_title"] = self._fallback_title(state)

        confidence = self._calculate_confidence_score(fields, normalized, name_matched)
        logger.debug(
            f"Extracted {sum(1 for v in fields.values() if v)} fields, confidence {confidence:.2f}"
        )
        return ParsedCandidate(source=ParseSource.LOCAL, confidence=confidence, **fields)

    # =========================
    # CONTACT LINES
    # =========================

    def _extract_contact_lines(self, state: _LineState) -> Dict[str, Optional[str]]:
        found: Dict[str, Optional[str]] = {"phone": None, "mobile": None, "email": None, "website": None}

        for index, line in state.free():
            matched = False

            email = self._extract_email(line)
            if email:
                matched = True
                found["email"] = found["email"] or email

            website = self._extract_website(line)
            if website:
                matched = True
                found["website"] = found["website"] or website

            # Fax numbers are recognized but not kept
            fax = FAX_LABEL.search(line)
            if fax and self.patterns["generic_phone"].search(line[fax.start():]):
                matched = True

            phones = self._extract_phones(line[:fax.start()] if fax else line)
            for category in ("phone", "mobile"):
                if phones[category]:
                    matched = True
                    found[category] = found[category] or phones[category]

            if matched:
                state.claim(index)

        return found

    def _extract_phones(self, line: str) -> Dict[str, Optional[str]]:
        """Split the numbers on one line into landline and mobile."""
        mobiles = [m.group(0) for m in self.patterns["mobile"].finditer(line)]
        landlines = [m.group(0) for m in self.patterns["landline"].finditer(line)]

        if not mobiles and not landlines:
            generic = [
                m.group(0).strip()
                for m in self.patterns["generic_phone"].finditer(line)
                if 8 <= sum(c.isdigit() for c in m.group(0)) <= 15
            ]
            if generic:
                if MOBILE_LABEL.search(line):
                    mobiles = generic
                else:
                    landlines = generic

        return {
            "phone": landlines[0].strip() if landlines else None,
            "mobile": mobiles[0].strip() if mobiles else None,
        }

    def _extract_email(self, text: str) -> Optional[str]:
        m = self.patterns["email"].search(text)
        return m.group(0) if m else None

    def _extract_website(self, text: str) -> Optional[str]:
        """Find a URL or bare domain that is not part of an email address."""
        text = self.patterns["email"].sub(" ", text)
        m = self.patterns["url"].search(text)
        if m:
            return m.group(0).rstrip(".")
        m = self.patterns["domain"].search(text)
        if m:
            return m.group(0).rstrip(".")
        return None

    # =========================
    # ADDRESS / COMPANY / TITLE
    # =========================

    def _extract_address(self, state: _LineState) -> Optional[str]:
        for index, line in state.free():
            m = ADDRESS_LABEL.match(line)
            if m and m.group(1).strip():
                state.claim(index)
                return m.group(1).strip()

        candidates = [
            (index, line) for index, line in state.free()
            if ADDRESS_UNITS.search(line) and not self._is_company_line(line)
        ]
        if not candidates:
            return None
        index, line = max(candidates, key=lambda item: len(item[1]))
        state.claim(index)
        return line

    def _is_company_line(self, line: str) -> bool:
        return bool(CJK_COMPANY_SUFFIX.search(line) or LATIN_COMPANY_SUFFIX.search(line))

    def _extract_company(self, state: _LineState) -> Optional[str]:
        for index, line in state.free():
            if self._is_company_line(line):
                state.claim(index)
                return line
        return None

    def _extract_title(self, state: _LineState) -> Optional[str]:
        for index, line in state.free():
            if CJK_TITLE_KEYWORDS.search(line) or LATIN_TITLE_KEYWORDS.search(line):
                state.claim(index)
                return line
        return None

    def _fallback_title(self, state: _LineState) -> Optional[str]:
        for index, line in state.free():
            if len(line) <= 30 and not any(c.isdigit() for c in line) and "@" not in line:
                state.claim(index)
                return line
        return None

    # =========================
    # NAME
    # =========================

    def _extract_name(self, state: _LineState):
        """Take the first free line that can be a person's name.

        Returns:
            Tuple of (name or None, whether the name matched a known pattern)
        """
        for index, line in state.free():
            candidate = self._clean_name(line)
            if not candidate or len(candidate) < 2 or len(candidate) > 40:
                continue
            if any(c.isdigit() for c in candidate) or "@" in candidate:
                continue
            state.claim(index)
            return candidate, self._matches_name_pattern(candidate)
        return None, False

    def _clean_name(self, line: str) -> str:
        line = re.sub(r"^(?:姓名|Name)\s*[:：]\s*", "", line, flags=re.IGNORECASE).strip()
        # OCR often spaces out CJK characters: "陳 大 文"
        if re.fullmatch(rf"[{CJK}](?:\s*[{CJK}])+", line):
            return re.sub(r"\s+", "", line)
        return line

    def _matches_name_pattern(self, name: str) -> bool:
        if self.patterns["cjk_name"].match(name):
            return name[0] in SURNAMES or name[:2] in COMPOUND_SURNAMES
        return bool(self.patterns["latin_name"].match(name))

    # =========================
    # CONFIDENCE
    # =========================

    def _calculate_confidence_score(self, fields: Dict[str, Optional[str]], text: str, name_matched: bool) -> float:
        """Score rises with field count and text length, falls with noise."""
        filled = sum(1 for value in fields.values() if value)
        coverage = min(filled / FIELD_SLOTS, 1.0)
        chars = [c for c in text if not c.isspace()]
        length_factor = min(len(chars) / LENGTH_SATURATION, 1.0)

        score = (0.75 * coverage + 0.25 * length_factor) * (1.0 - self._noise_ratio(text, chars))
        if name_matched:
            score += NAME_PATTERN_BONUS
        return max(0.0, min(1.0, score))

    @staticmethod
    def _noise_ratio(text: str, chars: List[str]) -> float:
        if not chars:
            return 0.0
        odd = sum(1 for c in chars if not c.isalnum() and c not in CARD_PUNCTUATION)
        repeated = sum(len(m.group(0)) for m in REPEATED_PUNCTUATION.finditer(text))
        return min((odd + repeated) / len(chars), 1.0)
