"""
Generation module for grounded chat and study materials.

- Context assembly under a character budget
- Grounded chat and study guide / flashcard / quiz / summary generation
- Best-effort parsing of generated flashcards and quizzes
"""

from .config import GenerationConfig
from .context_builder import assemble_context, available_budget, truncate_content
from .generator import ChatTurn, ContentKind, GeneratedContent, StudyGenerator
from .parsers import ParsedItem, ParseResult, parse_flashcards, parse_quiz
from .prompts import GROUNDED_SYSTEM_PROMPT

__all__ = [
    "assemble_context",
    "available_budget",
    "truncate_content",
    "GenerationConfig",
    "GROUNDED_SYSTEM_PROMPT",
    "StudyGenerator",
    "ChatTurn",
    "ContentKind",
    "GeneratedContent",
    "ParsedItem",
    "ParseResult",
    "parse_flashcards",
    "parse_quiz",
]
