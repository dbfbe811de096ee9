"""Deterministic classification of Drive files from their name and MIME type.

Everything here is a pure function of its inputs: the same filename (and MIME
type) always yields the same category, tags, title and description.
"""

from __future__ import annotations

import re

from clubsite.models import ResourceCategory

# Ordered name rules: (suffixes, keywords, category).  First match wins.
_NAME_RULES: tuple[tuple[tuple[str, ...], tuple[str, ...], ResourceCategory], ...] = (
    ((".pptx", ".ppt"), ("slides",), ResourceCategory.PRESENTATION),
    ((".pdf", ".docx", ".doc"), (), ResourceCategory.DOCUMENT),
    ((".mp4", ".mov", ".avi"), (), ResourceCategory.VIDEO),
    ((".zip",), ("template",), ResourceCategory.TEMPLATE),
    ((".csv", ".json"), ("dataset",), ResourceCategory.DATASET),
    ((".py", ".ipynb", ".js"), (), ResourceCategory.CODE),
)

# Checked only when no name rule matched.
_MIME_RULES: tuple[tuple[tuple[str, ...], ResourceCategory], ...] = (
    (("presentation",), ResourceCategory.PRESENTATION),
    (("spreadsheet",), ResourceCategory.DATASET),
    (("document",), ResourceCategory.DOCUMENT),
    (("video",), ResourceCategory.VIDEO),
    (("zip", "compressed"), ResourceCategory.TEMPLATE),
)

TAG_KEYWORDS: tuple[str, ...] = (
    "machine learning",
    "ml",
    "ai",
    "artificial intelligence",
    "deep learning",
    "neural network",
    "python",
    "tensorflow",
    "pytorch",
    "sklearn",
    "scikit-learn",
    "numpy",
    "pandas",
    "data science",
    "statistics",
    "algorithm",
    "model",
    "tutorial",
    "workshop",
    "lecture",
    "assignment",
    "project",
    "beginner",
    "intermediate",
    "advanced",
    "introduction",
    "intro",
    "nlp",
    "computer vision",
    "cv",
    "reinforcement learning",
    "classification",
    "regression",
    "clustering",
    "prediction",
)

# (substrings, tag) pairs appended after keywords, course code and year.
_HINT_TAGS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("slides", "presentation"), "presentation"),
    (("notebook", ".ipynb"), "jupyter"),
    (("dataset", "data"), "dataset"),
    (("template",), "template"),
)

MAX_TAGS = 10

_COURSE_CODE_RE = re.compile(r"[a-z]{2,4}\s?\d{3}", re.IGNORECASE)
_YEAR_RE = re.compile(r"20\d{2}")
_EXTENSION_RE = re.compile(r"\.[^/.]+$")

_DESCRIPTION_TEMPLATES: dict[ResourceCategory, str] = {
    ResourceCategory.PRESENTATION: "Presentation slides on {title}",
    ResourceCategory.DOCUMENT: "Document covering {title}",
    ResourceCategory.VIDEO: "Video tutorial on {title}",
    ResourceCategory.TEMPLATE: "{title} template for projects and assignments",
    ResourceCategory.DATASET: "Dataset for {title} analysis and experiments",
    ResourceCategory.CODE: "Code implementation for {title}",
    ResourceCategory.OTHER: "Resource file: {title}",
}

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def determine_category(mime_type: str, file_name: str) -> ResourceCategory:
    """Classify a file: filename suffix/keyword rules first, then MIME type."""
    name = file_name.lower()
    for suffixes, keywords, category in _NAME_RULES:
        if name.endswith(suffixes) or any(keyword in name for keyword in keywords):
            return category

    mime = (mime_type or "").lower()
    for fragments, category in _MIME_RULES:
        if any(fragment in mime for fragment in fragments):
            return category
    return ResourceCategory.OTHER


def extract_tags(file_name: str) -> list[str]:
    """Derive up to ``MAX_TAGS`` tags from *file_name*, in discovery order."""
    name = file_name.lower()
    tags: dict[str, None] = {}

    for keyword in TAG_KEYWORDS:
        if keyword.replace(" ", "") in name or keyword in name:
            tags[keyword] = None

    course = _COURSE_CODE_RE.search(name)
    if course:
        tags[course.group(0).upper()] = None

    year = _YEAR_RE.search(name)
    if year:
        tags[year.group(0)] = None

    for fragments, tag in _HINT_TAGS:
        if any(fragment in name for fragment in fragments):
            tags[tag] = None

    return list(tags)[:MAX_TAGS]


def clean_file_name(file_name: str) -> str:
    """Turn ``COSC290_intro-to_ML.pptx`` into ``Cosc290 Intro To Ml``."""
    stem = _EXTENSION_RE.sub("", file_name)
    spaced = " ".join(stem.replace("_", " ").replace("-", " ").split())
    return " ".join(word[:1].upper() + word[1:].lower() for word in spaced.split(" "))


def generate_description(file_name: str, category: ResourceCategory) -> str:
    return _DESCRIPTION_TEMPLATES[category].format(title=clean_file_name(file_name))


def file_extension(file_name: str) -> str:
    parts = file_name.split(".")
    if len(parts) > 1:
        return parts[-1].lower()
    return "file"


def format_file_size(num_bytes: int | None) -> str:
    """Human-readable size: ``0 Bytes``, ``512 Bytes``, ``2.35 MB``."""
    if not num_bytes or num_bytes < 0:
        return "0 Bytes"
    exponent = 0
    while exponent < len(_SIZE_UNITS) - 1 and num_bytes >= 1024 ** (exponent + 1):
        exponent += 1
    value = f"{num_bytes / 1024**exponent:.2f}".rstrip("0").rstrip(".")
    return f"{value} {_SIZE_UNITS[exponent]}"
