"""
Parsers for LLM-generated flashcards and quizzes.

Model output is free-form Markdown, so parsing is best effort: every parser
returns whatever it could extract together with the raw text, and counts
questions it recognised but could not use. Nothing is guessed; a multiple
choice question without a readable answer letter is skipped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from librarian.db.models import StudyItemKind

# How far below a question (or its options) the answer line may appear
ANSWER_LOOKAHEAD = 3

_OPTION_RE = re.compile(r"^([a-d])[).:]\s*(.+)$")
_NUMBERED_RE = re.compile(r"^\d+[.):]*\s*(.*)$")
_BOLD_NUMBER_RE = re.compile(r"^\*\*([^*]*\d[^*]*)\*\*\s*(.*)$")
_ANSWER_LETTER_RE = re.compile(r"answer\W*?\(?([a-d])\)?(?![a-z])", re.IGNORECASE)
_FLASH_Q_RE = re.compile(r"^(?:\*\*)?Q(?:uestion)?\s*:(?:\*\*)?\s*(.*)$", re.IGNORECASE)
_FLASH_A_RE = re.compile(r"^(?:\*\*)?A(?:nswer)?\s*:(?:\*\*)?\s*(.*)$", re.IGNORECASE)


@dataclass
class ParsedItem:
    """One study item extracted from model output."""

    kind: StudyItemKind
    front: str
    back: str
    options: List[Tuple[str, str]] = field(default_factory=list)
    answer_letter: Optional[str] = None


@dataclass
class ParseResult:
    items: List[ParsedItem]
    raw: str
    skipped: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.items


def parse_flashcards(text: str) -> ParseResult:
    """
    Extract Q:/A: pairs. Answers may continue over several lines until a
    separator ('---'), a blank line or the next question.
    """
    items: List[ParsedItem] = []
    skipped = 0
    question: Optional[str] = None
    answer_lines: List[str] = []

    def flush() -> None:
        nonlocal question, answer_lines, skipped
        if question is not None:
            answer = " ".join(answer_lines).strip()
            if question and answer:
                items.append(ParsedItem(kind=StudyItemKind.FLASHCARD, front=question, back=answer))
            else:
                skipped += 1
        question = None
        answer_lines = []

    in_answer = False
    for raw_line in text.splitlines():
        line = raw_line.strip()
        q_match = _FLASH_Q_RE.match(line)
        if q_match:
            flush()
            question = q_match.group(1).strip()
            in_answer = False
            continue
        a_match = _FLASH_A_RE.match(line)
        if a_match and question is not None and not in_answer:
            answer_lines = [a_match.group(1).strip()]
            in_answer = True
            continue
        if not line or line.startswith("---"):
            if in_answer:
                flush()
                in_answer = False
            continue
        if in_answer:
            answer_lines.append(line)

    flush()
    return ParseResult(items=items, raw=text, skipped=skipped)


def extract_question_text(line: str) -> Optional[str]:
    """Question text from "Q: ...", "1. ...", "1) ..." or "**1.** ..." lines."""
    line = line.strip()
    if line.startswith(("Q:", "Q.")):
        rest = line[2:].strip()
        return rest or None

    m = _BOLD_NUMBER_RE.match(line)
    if m and m.group(2).strip():
        return m.group(2).strip()

    if line[:1].isdigit():
        m = _NUMBERED_RE.match(line)
        if m and m.group(1).strip():
            return m.group(1).strip()
    return None


def extract_option(line: str) -> Optional[Tuple[str, str]]:
    """(letter, text) from "a) ...", "b. ..." or "c: ..." lines."""
    m = _OPTION_RE.match(line.strip())
    if not m:
        return None
    return m.group(1), m.group(2).strip()


def find_answer_letter(lines: Sequence[str]) -> Optional[Tuple[int, str]]:
    """(offset, letter) of the first "Answer: x" line within the lookahead."""
    for offset, line in enumerate(lines[:ANSWER_LOOKAHEAD]):
        if extract_question_text(line) is not None:
            break
        m = _ANSWER_LETTER_RE.search(line)
        if m:
            return offset, m.group(1).lower()
    return None


def find_answer_text(lines: Sequence[str]) -> Optional[Tuple[int, str]]:
    """(offset, text) of the first non-empty "Answer: ..." line within the lookahead."""
    for offset, line in enumerate(lines[:ANSWER_LOOKAHEAD]):
        if extract_question_text(line) is not None:
            break
        stripped = line.strip()
        if not stripped.lower().lstrip("*").startswith("answer"):
            continue
        text = stripped.lstrip("*")[len("answer") :]
        text = text.lstrip("*").lstrip(":").strip().strip("*").strip()
        if text:
            return offset, text
    return None


def format_options(question: str, options: Sequence[Tuple[str, str]]) -> str:
    lines = [question] + [f"{letter}) {text}" for letter, text in options]
    return "\n".join(lines)


def parse_options(front: str) -> List[Tuple[str, str]]:
    """Options stored on the front of a multiple-choice item."""
    opts = []
    for line in front.splitlines()[1:]:
        opt = extract_option(line)
        if opt:
            opts.append(opt)
    return opts


def parse_quiz(text: str) -> ParseResult:
    """
    Extract quiz questions.

    A question followed by at least two a)-d) options is multiple choice and
    needs an answer letter. A question containing "___" with an answer line
    is fill-in-the-blank. Any other question with an answer line is short
    answer.
    """
    lines = text.splitlines()
    items: List[ParsedItem] = []
    skipped = 0
    i = 0

    while i < len(lines):
        q_text = extract_question_text(lines[i])
        if q_text is None:
            i += 1
            continue

        options: List[Tuple[str, str]] = []
        j = i + 1
        while j < len(lines):
            opt = extract_option(lines[j])
            if opt is None:
                break
            options.append(opt)
            j += 1

        if len(options) >= 2:
            found = find_answer_letter(lines[j:])
            letters = dict(options)
            if found is None or found[1] not in letters:
                skipped += 1
                i = j
                continue
            offset, letter = found
            items.append(
                ParsedItem(
                    kind=StudyItemKind.QUIZ_MULTIPLE_CHOICE,
                    front=format_options(q_text, options),
                    back=letters[letter],
                    options=options,
                    answer_letter=letter,
                )
            )
            i = j + offset + 1
            continue

        found_text = find_answer_text(lines[i + 1 :])
        if found_text is None:
            skipped += 1
            i += 1
            continue

        offset, answer = found_text
        kind = StudyItemKind.QUIZ_FILL_BLANK if "___" in q_text else StudyItemKind.QUIZ_SHORT_ANSWER
        items.append(ParsedItem(kind=kind, front=q_text, back=answer))
        i = i + 1 + offset + 1

    return ParseResult(items=items, raw=text, skipped=skipped)
