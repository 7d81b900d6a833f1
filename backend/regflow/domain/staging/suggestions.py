"""Suggestion engine for staged files

Deterministic keyword classifier producing a suggested name, description,
category and confidence from the original file name. Keyword groups are
tested in order and the first match wins, so ``clinical_trial_report.pdf``
is classified as a test report.

The taxonomy below is also what the canonical store seeds as its default
category list.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .models import FileCategory, Suggestion
from .validation import strip_extension


APPLICATION_FORM = FileCategory(
    id="application-form", name="Application Form",
    description="Various application forms", required=True, order=1,
)
PRODUCT_MANUAL = FileCategory(
    id="product-manual", name="Product Manual",
    description="Product instruction manual", required=True, order=2,
)
TECHNICAL_DOCUMENTATION = FileCategory(
    id="technical-documentation", name="Technical Documentation",
    description="Technical specifications", required=False, order=3,
)
TEST_REPORT = FileCategory(
    id="test-report", name="Test Report",
    description="Third-party test reports", required=True, order=4,
)
DESIGN_DRAWINGS = FileCategory(
    id="design-drawings", name="Design Drawings",
    description="Product design drawings", required=False, order=5,
)
CLINICAL_TRIAL = FileCategory(
    id="clinical-trial", name="Clinical Trial",
    description="Clinical trial related documents", required=False, order=6,
)

DEFAULT_CATEGORIES: Tuple[FileCategory, ...] = (
    APPLICATION_FORM,
    PRODUCT_MANUAL,
    TECHNICAL_DOCUMENTATION,
    TEST_REPORT,
    DESIGN_DRAWINGS,
    CLINICAL_TRIAL,
)


@dataclass(frozen=True)
class KeywordGroup:
    name: str
    keywords: Tuple[str, ...]
    category: FileCategory
    confidence: float
    description: str

    def matches(self, normalized_name: str) -> bool:
        return any(keyword in normalized_name for keyword in self.keywords)


# Order matters: first match wins
KEYWORD_GROUPS: Tuple[KeywordGroup, ...] = (
    KeywordGroup("application", ("申请", "application"), APPLICATION_FORM, 0.9,
                 "医疗器械注册申请表"),
    KeywordGroup("manual", ("说明书", "manual", "instruction"), PRODUCT_MANUAL, 0.95,
                 "产品使用说明书文档"),
    KeywordGroup("test_report", ("检测", "test", "report"), TEST_REPORT, 0.85,
                 "第三方检测报告文档"),
    KeywordGroup("design", ("设计", "design", "图"), DESIGN_DRAWINGS, 0.8,
                 "产品设计图纸文档"),
    KeywordGroup("clinical", ("临床", "clinical"), CLINICAL_TRIAL, 0.88,
                 "临床试验相关文档"),
)

FALLBACK_GROUP = KeywordGroup(
    "technical_documentation", (), TECHNICAL_DOCUMENTATION, 0.6, "技术文档资料",
)

_SEPARATORS = re.compile(r"[-_]")
_WHITESPACE = re.compile(r"\s+")


def clean_display_name(file_name: str) -> str:
    """Turn a file name into a display name

    Example:
        >>> clean_display_name('检测报告_2024_001.pdf')
        '检测报告 2024 001'
    """
    name = _SEPARATORS.sub(" ", strip_extension(file_name))
    return _WHITESPACE.sub(" ", name).strip()


def match_group(file_name: str) -> KeywordGroup:
    """Return the first keyword group matching the lower-cased file name."""
    normalized = file_name.lower()
    for group in KEYWORD_GROUPS:
        if group.matches(normalized):
            return group
    return FALLBACK_GROUP


def suggest(original_file_name: str, mime_type: Optional[str] = None) -> Suggestion:
    """Compute the classification suggestion for a staged file.

    Pure function. Only the file name drives the classification;
    ``mime_type`` is not consulted.
    """
    group = match_group(original_file_name)
    return Suggestion(
        suggested_name=clean_display_name(original_file_name),
        suggested_description=group.description,
        suggested_category=group.category.to_ref(),
        confidence=group.confidence,
    )
