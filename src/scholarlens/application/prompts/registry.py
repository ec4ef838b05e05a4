from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from scholarlens.application.prompts.reader import (
    COMIC_PANELS_SYSTEM,
    COMIC_PANELS_USER,
    NEWSPAPER_SNIPPETS_SYSTEM,
    NEWSPAPER_SNIPPETS_USER,
    TRANSLATION_SYSTEM,
    TRANSLATION_USER,
)
from scholarlens.application.prompts.source_analysis import (
    GROUNDED_SUMMARY_SYSTEM,
    GROUNDED_SUMMARY_USER,
    SOURCE_PROCESSING_SYSTEM,
    SOURCE_PROCESSING_USER,
)
from scholarlens.application.prompts.writing import (
    ARTICLE_SYSTEM,
    ARTICLE_USER,
    BRAINSTORMING_SYSTEM,
    BRAINSTORMING_USER,
)


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    system: str
    user: str


class PromptRegistry:
    def __init__(self) -> None:
        self._templates: Dict[str, PromptTemplate] = {
            "grounded_summary": PromptTemplate(
                name="grounded_summary",
                system=GROUNDED_SUMMARY_SYSTEM,
                user=GROUNDED_SUMMARY_USER,
            ),
            "source_processing": PromptTemplate(
                name="source_processing",
                system=SOURCE_PROCESSING_SYSTEM,
                user=SOURCE_PROCESSING_USER,
            ),
            "brainstorming": PromptTemplate(
                name="brainstorming",
                system=BRAINSTORMING_SYSTEM,
                user=BRAINSTORMING_USER,
            ),
            "article": PromptTemplate(
                name="article",
                system=ARTICLE_SYSTEM,
                user=ARTICLE_USER,
            ),
            "translation": PromptTemplate(
                name="translation",
                system=TRANSLATION_SYSTEM,
                user=TRANSLATION_USER,
            ),
            "newspaper_snippets": PromptTemplate(
                name="newspaper_snippets",
                system=NEWSPAPER_SNIPPETS_SYSTEM,
                user=NEWSPAPER_SNIPPETS_USER,
            ),
            "comic_panels": PromptTemplate(
                name="comic_panels",
                system=COMIC_PANELS_SYSTEM,
                user=COMIC_PANELS_USER,
            ),
        }

    def get(self, name: str) -> PromptTemplate:
        key = (name or "").strip().lower()
        if key not in self._templates:
            raise KeyError(f"Unknown prompt template: {name}")
        return self._templates[key]
