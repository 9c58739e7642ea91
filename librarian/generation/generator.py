"""
Study generator: retrieves grounded context, calls the LLM, returns answers
and study materials. Parsing of flashcards and quizzes is delegated to
parsers.py.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from librarian.core.errors import NoDocumentsError
from librarian.db.models import DocumentKind
from librarian.llm.client import GroqClient, Message, message
from librarian.rag.retriever import ContextBundle, Retriever

from .config import GenerationConfig
from .context_builder import approx_tokens, available_budget
from .parsers import ParseResult, parse_flashcards, parse_quiz
from .prompts import (
    CHAT_USER_TEMPLATE,
    FLASHCARDS_PROMPT,
    GENERATION_TOPIC_USER_TEMPLATE,
    GENERATION_USER_TEMPLATE,
    GROUNDED_SYSTEM_PROMPT,
    HOMEWORK_HELP_PROMPT,
    HOMEWORK_USER_TEMPLATE,
    NO_DOCUMENTS_SYSTEM_PROMPT,
    QUIZ_PROMPT,
    STUDY_GUIDE_PROMPT,
    SUMMARY_PROMPT,
)

logger = logging.getLogger(__name__)


class ContentKind(str, enum.Enum):
    STUDY_GUIDE = "study-guide"
    FLASHCARDS = "flashcards"
    QUIZ = "quiz"
    SUMMARY = "summary"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def system_prompt(self) -> str:
        return _SYSTEM_PROMPTS[self]

    @property
    def document_kind(self) -> DocumentKind:
        """Kind under which saved output of this type is stored."""
        return _DOCUMENT_KINDS[self]


_DISPLAY_NAMES = {
    ContentKind.STUDY_GUIDE: "Study Guide",
    ContentKind.FLASHCARDS: "Flashcards",
    ContentKind.QUIZ: "Quiz",
    ContentKind.SUMMARY: "Summary",
}

_SYSTEM_PROMPTS = {
    ContentKind.STUDY_GUIDE: STUDY_GUIDE_PROMPT,
    ContentKind.FLASHCARDS: FLASHCARDS_PROMPT,
    ContentKind.QUIZ: QUIZ_PROMPT,
    ContentKind.SUMMARY: SUMMARY_PROMPT,
}

_DOCUMENT_KINDS = {
    ContentKind.STUDY_GUIDE: DocumentKind.GENERATED_STUDY_GUIDE,
    ContentKind.FLASHCARDS: DocumentKind.GENERATED_FLASHCARDS,
    ContentKind.QUIZ: DocumentKind.GENERATED_QUIZ,
    ContentKind.SUMMARY: DocumentKind.GENERATED_SUMMARY,
}


@dataclass
class ChatTurn:
    """Result of one grounded chat exchange."""

    question: str
    answer: str
    context: ContextBundle

    def append_to(self, history: List[Message]) -> List[Message]:
        """History with this turn added; only the bare question is kept, not the context."""
        return history + [message("user", self.question), message("assistant", self.answer)]


@dataclass
class GeneratedContent:
    kind: ContentKind
    topic: Optional[str]
    text: str
    context: ContextBundle


def _history_chars(history: List[Message]) -> int:
    return sum(len(m.get("content", "")) for m in history)


class StudyGenerator:
    """Grounded chat and study-material generation over one bucket."""

    def __init__(
        self,
        client: GroqClient,
        retriever: Retriever,
        config: Optional[GenerationConfig] = None,
    ):
        self.client = client
        self.retriever = retriever
        self.config = config or GenerationConfig()

    def chat_budget(self, question: str, history: List[Message]) -> int:
        budget = available_budget(
            len(GROUNDED_SYSTEM_PROMPT),
            _history_chars(history) + len(question),
            config=self.config,
        )
        return min(budget, self.config.chat_context_chars)

    @staticmethod
    def build_chat_messages(
        question: str,
        history: List[Message],
        context: ContextBundle,
    ) -> List[Message]:
        """System prompt, prior turns, then the question wrapped in retrieved context."""
        if context.is_empty:
            return [message("system", NO_DOCUMENTS_SYSTEM_PROMPT), *history, message("user", question)]
        user = CHAT_USER_TEMPLATE.format(context=context.text.rstrip(), question=question)
        return [message("system", GROUNDED_SYSTEM_PROMPT), *history, message("user", user)]

    def chat_turn(self, question: str, history: Optional[List[Message]] = None) -> ChatTurn:
        history = history or []
        context = self.retriever.build_context(question, self.chat_budget(question, history))
        messages = self.build_chat_messages(question, history, context)
        logger.info(
            "Chat turn with %d context blocks (~%d tokens)",
            len(context.results),
            approx_tokens(context.text, self.config.chars_per_token),
        )
        answer = self.client.chat(
            messages,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        return ChatTurn(question=question, answer=answer, context=context)

    def stream_chat(self, question: str, history: Optional[List[Message]] = None) -> Tuple[ContextBundle, Iterator[str]]:
        """Context used plus an iterator over answer deltas."""
        history = history or []
        context = self.retriever.build_context(question, self.chat_budget(question, history))
        messages = self.build_chat_messages(question, history, context)
        stream = self.client.stream(
            messages,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        return context, stream

    @staticmethod
    def build_messages(kind: ContentKind, topic: Optional[str], context_text: str) -> List[Message]:
        """Messages for a generation request; pure, so it can be inspected in tests."""
        name = kind.display_name.lower()
        if topic:
            user = GENERATION_TOPIC_USER_TEMPLATE.format(name=name, topic=topic, context=context_text)
        else:
            user = GENERATION_USER_TEMPLATE.format(name=name, context=context_text)
        return [message("system", kind.system_prompt), message("user", user)]

    def gather_context(self, topic: Optional[str]) -> ContextBundle:
        """Topic-focused context, or an overview of recent documents without a topic."""
        budget = self.config.generation_context_chars
        if topic and topic.strip():
            context = self.retriever.build_context(topic, budget)
        else:
            context = self.retriever.build_overview(budget, limit=self.config.overview_documents)
        if context.is_empty:
            raise NoDocumentsError("No documents found in the current bucket")
        return context

    def generate(self, kind: ContentKind, topic: Optional[str] = None) -> GeneratedContent:
        topic = topic.strip() if topic else None
        context = self.gather_context(topic)
        messages = self.build_messages(kind, topic, context.text.rstrip())
        logger.info("Generating %s from %d blocks", kind.value, len(context.results))
        text = self.client.chat(
            messages,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        return GeneratedContent(kind=kind, topic=topic or None, text=text, context=context)

    def flashcards(self, topic: Optional[str] = None) -> Tuple[GeneratedContent, ParseResult]:
        content = self.generate(ContentKind.FLASHCARDS, topic)
        parsed = parse_flashcards(content.text)
        if parsed.skipped:
            logger.warning("Skipped %d malformed flashcards", parsed.skipped)
        return content, parsed

    def quiz(self, topic: Optional[str] = None) -> Tuple[GeneratedContent, ParseResult]:
        content = self.generate(ContentKind.QUIZ, topic)
        parsed = parse_quiz(content.text)
        if parsed.skipped:
            logger.warning("Skipped %d quiz questions without a usable answer", parsed.skipped)
        return content, parsed

    def homework_turn(self, problem: str, history: Optional[List[Message]] = None) -> ChatTurn:
        """Tutor-style answer grounded in an overview of the bucket."""
        history = history or []
        context = self.gather_context(None)
        user = HOMEWORK_USER_TEMPLATE.format(context=context.text.rstrip(), problem=problem)
        messages = [message("system", HOMEWORK_HELP_PROMPT), *history, message("user", user)]
        answer = self.client.chat(
            messages,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        return ChatTurn(question=problem, answer=answer, context=context)
