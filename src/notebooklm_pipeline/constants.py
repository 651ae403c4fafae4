"""
Constants and mappings for the NotebookLM API.

This module acts as the Single Source of Truth for all API constants and code
mappings. Option names used in user settings are resolved to wire codes here,
so the client and the pipeline never hard-code integers.
"""

from typing import TypeVar

T = TypeVar("T")


class CodeMapper:
    """
    Bidirectional mapping for API codes.

    Names are matched case-insensitively; unknown names and codes fall back
    to a default instead of raising.
    """

    def __init__(self, mapping: dict[str, int], unknown_label: str = "unknown"):
        # Store as lower-case keys for case-insensitive lookup
        self._name_to_code: dict[str, int] = {k.lower(): v for k, v in mapping.items()}
        self._code_to_name: dict[int, str] = {v: k for k, v in mapping.items()}
        self._unknown_label = unknown_label

    def resolve(self, name: str | None, default: T) -> int | T:
        """Get the code for a settings value, falling back to ``default`` for unknown names."""
        if not name:
            return default
        return self._name_to_code.get(str(name).lower(), default)

    def get_name(self, code: int | None) -> str:
        """Get string name for an integer code, or the 'unknown_label' if not found."""
        if code is None:
            return self._unknown_label
        return self._code_to_name.get(code, self._unknown_label)


# =============================================================================
# Endpoints
# =============================================================================
BASE_URL = "https://notebooklm.google.com"
HOMEPAGE_URL = f"{BASE_URL}/"
BATCHEXECUTE_URL = f"{BASE_URL}/_/LabsTailwindUi/data/batchexecute"
UPLOAD_URL = f"{BASE_URL}/upload/_/"
LOGIN_HOST = "accounts.google.com"
DEFAULT_BL = "boq_labs-tailwind-frontend_20260108.06_p0"

# =============================================================================
# Artifact Types
# =============================================================================
ARTIFACT_TYPE_AUDIO = 1
ARTIFACT_TYPE_REPORT = 2
ARTIFACT_TYPE_VIDEO = 3
ARTIFACT_TYPE_QUIZ = 4  # Also Flashcards (differentiated by variant code)
ARTIFACT_TYPE_INFOGRAPHIC = 7
ARTIFACT_TYPE_SLIDE_DECK = 8
ARTIFACT_TYPE_DATA_TABLE = 9

# =============================================================================
# Lifecycle Status Codes
# =============================================================================
ARTIFACT_STATUS_PROCESSING = 1
ARTIFACT_STATUS_PENDING = 2
ARTIFACT_STATUS_COMPLETED = 3
ARTIFACT_STATUS_FAILED = 4

# Status code -> task status string used in pipeline state
ARTIFACT_STATUS_NAMES = {
    ARTIFACT_STATUS_PROCESSING: "in_progress",
    ARTIFACT_STATUS_PENDING: "pending",
    ARTIFACT_STATUS_COMPLETED: "completed",
    ARTIFACT_STATUS_FAILED: "failed",
}

SOURCE_STATUS_PROCESSING = 1
SOURCE_STATUS_READY = 2
SOURCE_STATUS_ERROR = 3
SOURCE_STATUS_PREPARING = 4

SOURCE_STATUSES = CodeMapper({
    "processing": SOURCE_STATUS_PROCESSING,
    "ready": SOURCE_STATUS_READY,
    "error": SOURCE_STATUS_ERROR,
    "preparing": SOURCE_STATUS_PREPARING,
})

# =============================================================================
# Audio Overview
# =============================================================================
AUDIO_FORMAT_DEEP_DIVE = 1
AUDIO_FORMAT_BRIEF = 2
AUDIO_FORMAT_CRITIQUE = 3
AUDIO_FORMAT_DEBATE = 4

AUDIO_FORMATS = CodeMapper({
    "deep_dive": AUDIO_FORMAT_DEEP_DIVE,
    "brief": AUDIO_FORMAT_BRIEF,
    "critique": AUDIO_FORMAT_CRITIQUE,
    "debate": AUDIO_FORMAT_DEBATE,
})

AUDIO_LENGTH_SHORT = 1
AUDIO_LENGTH_DEFAULT = 2
AUDIO_LENGTH_LONG = 3

AUDIO_LENGTHS = CodeMapper({
    "short": AUDIO_LENGTH_SHORT,
    "default": AUDIO_LENGTH_DEFAULT,
    "long": AUDIO_LENGTH_LONG,
})

# =============================================================================
# Video Overview
# =============================================================================
VIDEO_FORMAT_EXPLAINER = 1
VIDEO_FORMAT_BRIEF = 2

VIDEO_FORMATS = CodeMapper({
    "explainer": VIDEO_FORMAT_EXPLAINER,
    "brief": VIDEO_FORMAT_BRIEF,
})

VIDEO_STYLE_AUTO_SELECT = 1
VIDEO_STYLE_CUSTOM = 2
VIDEO_STYLE_CLASSIC = 3
VIDEO_STYLE_WHITEBOARD = 4
VIDEO_STYLE_KAWAII = 5
VIDEO_STYLE_ANIME = 6
VIDEO_STYLE_WATERCOLOR = 7
VIDEO_STYLE_RETRO_PRINT = 8
VIDEO_STYLE_HERITAGE = 9
VIDEO_STYLE_PAPER_CRAFT = 10

VIDEO_STYLES = CodeMapper({
    "auto_select": VIDEO_STYLE_AUTO_SELECT,
    "custom": VIDEO_STYLE_CUSTOM,
    "classic": VIDEO_STYLE_CLASSIC,
    "whiteboard": VIDEO_STYLE_WHITEBOARD,
    "kawaii": VIDEO_STYLE_KAWAII,
    "anime": VIDEO_STYLE_ANIME,
    "watercolor": VIDEO_STYLE_WATERCOLOR,
    "retro_print": VIDEO_STYLE_RETRO_PRINT,
    "heritage": VIDEO_STYLE_HERITAGE,
    "paper_craft": VIDEO_STYLE_PAPER_CRAFT,
})

# =============================================================================
# Infographic
# =============================================================================
INFOGRAPHIC_ORIENTATION_LANDSCAPE = 1
INFOGRAPHIC_ORIENTATION_PORTRAIT = 2
INFOGRAPHIC_ORIENTATION_SQUARE = 3

INFOGRAPHIC_ORIENTATIONS = CodeMapper({
    "landscape": INFOGRAPHIC_ORIENTATION_LANDSCAPE,
    "portrait": INFOGRAPHIC_ORIENTATION_PORTRAIT,
    "square": INFOGRAPHIC_ORIENTATION_SQUARE,
})

INFOGRAPHIC_DETAIL_CONCISE = 1
INFOGRAPHIC_DETAIL_STANDARD = 2
INFOGRAPHIC_DETAIL_DETAILED = 3

INFOGRAPHIC_DETAILS = CodeMapper({
    "concise": INFOGRAPHIC_DETAIL_CONCISE,
    "standard": INFOGRAPHIC_DETAIL_STANDARD,
    "detailed": INFOGRAPHIC_DETAIL_DETAILED,
})

# =============================================================================
# Slide Deck
# =============================================================================
SLIDE_DECK_FORMAT_DETAILED = 1
SLIDE_DECK_FORMAT_PRESENTER = 2

SLIDE_DECK_FORMATS = CodeMapper({
    "detailed_deck": SLIDE_DECK_FORMAT_DETAILED,
    "presenter_slides": SLIDE_DECK_FORMAT_PRESENTER,
})

SLIDE_DECK_LENGTH_DEFAULT = 1
SLIDE_DECK_LENGTH_SHORT = 2

SLIDE_DECK_LENGTHS = CodeMapper({
    "default": SLIDE_DECK_LENGTH_DEFAULT,
    "short": SLIDE_DECK_LENGTH_SHORT,
})

# =============================================================================
# Quiz / Flashcards
# =============================================================================
QUIZ_QUANTITY_FEWER = 1
QUIZ_QUANTITY_STANDARD = 2

QUIZ_QUANTITIES = CodeMapper({
    "fewer": QUIZ_QUANTITY_FEWER,
    "standard": QUIZ_QUANTITY_STANDARD,
})

QUIZ_DIFFICULTY_EASY = 1
QUIZ_DIFFICULTY_MEDIUM = 2
QUIZ_DIFFICULTY_HARD = 3

QUIZ_DIFFICULTIES = CodeMapper({
    "easy": QUIZ_DIFFICULTY_EASY,
    "medium": QUIZ_DIFFICULTY_MEDIUM,
    "hard": QUIZ_DIFFICULTY_HARD,
})

QUIZ_VARIANT_FLASHCARDS = 1
QUIZ_VARIANT_QUIZ = 2

# =============================================================================
# Reports
# =============================================================================
REPORT_FORMAT_BRIEFING_DOC = "briefing_doc"
REPORT_FORMAT_STUDY_GUIDE = "study_guide"
REPORT_FORMAT_BLOG_POST = "blog_post"
REPORT_FORMAT_CUSTOM = "custom"

REPORT_FORMATS = {
    REPORT_FORMAT_BRIEFING_DOC: {
        "title": "Briefing Doc",
        "description": "Key insights and important quotes",
        "prompt": (
            "Create a comprehensive briefing document that includes an "
            "Executive Summary, detailed analysis of key themes, important "
            "quotes with context, and actionable insights."
        ),
    },
    REPORT_FORMAT_STUDY_GUIDE: {
        "title": "Study Guide",
        "description": "Short-answer quiz, essay questions, glossary",
        "prompt": (
            "Create a comprehensive study guide that includes key concepts, "
            "short-answer practice questions, essay prompts for deeper "
            "exploration, and a glossary of important terms."
        ),
    },
    REPORT_FORMAT_BLOG_POST: {
        "title": "Blog Post",
        "description": "Insightful takeaways in readable article format",
        "prompt": (
            "Write an engaging blog post that presents the key insights "
            "in an accessible, reader-friendly format. Include an attention-"
            "grabbing introduction, well-organized sections, and a compelling "
            "conclusion with takeaways."
        ),
    },
    REPORT_FORMAT_CUSTOM: {
        "title": "Custom Report",
        "description": "Custom format",
        "prompt": "Create a report based on the provided sources.",
    },
}

# =============================================================================
# Pipeline
# =============================================================================
SOURCE_KIND_PDF = "pdf"
SOURCE_KIND_WEBPAGE = "webpage"
SOURCE_KINDS = (SOURCE_KIND_PDF, SOURCE_KIND_WEBPAGE)
