"""
Query rewriting for hybrid retrieval.

Turns a conversational question into a compact search string and pulls out
numbered references ("exercise 0.3", "page 26") so keyword search can match
them exactly; embedding similarity tends to blur numeric identifiers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List

# Most specific first: "what is the" must be tried before "what is".
DEFAULT_FILLER_PREFIXES = [
    "can you give me the answer for",
    "can you give me the answer to",
    "can you give me",
    "can you help me with",
    "can you explain",
    "could you explain",
    "could you help me with",
    "i need help with",
    "i need to understand",
    "i want to know about",
    "please help me with",
    "please explain",
    "what is the",
    "what are the",
    "what is",
    "what are",
    "how does the",
    "how does",
    "how do",
    "how is",
    "explain the",
    "explain",
    "tell me about",
    "describe the",
    "describe",
    "define the",
    "define",
    "why does",
    "why is",
    "why do",
    "when does",
    "when is",
    "where does",
    "where is",
    "give me the answer for",
    "give me the answer to",
    "give me",
]

DEFAULT_TRAILING_FILLERS = [
    "and all its sub questions",
    "and all the sub questions",
    "and all sub questions",
    "and its sub questions",
    "and sub questions",
]

DEFAULT_FILLER_WORDS = ["specifically"]

DEFAULT_REFERENCE_KEYWORDS = [
    "exercise",
    "exercises",
    "chapter",
    "chapters",
    "section",
    "sections",
    "page",
    "pages",
    "problem",
    "problems",
    "question",
    "questions",
    "figure",
    "figures",
    "theorem",
    "definition",
    "example",
    "lemma",
    "corollary",
    "proposition",
]

_EDGE_PUNCT = ".,;:!?()[]{}\"'"
_SPACES_RE = re.compile(r"\s+")


@dataclass
class QueryRewriter:
    """Rule-based query rewriter producing one search string for both retrievers."""

    filler_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_FILLER_PREFIXES))
    trailing_fillers: List[str] = field(default_factory=lambda: list(DEFAULT_TRAILING_FILLERS))
    filler_words: List[str] = field(default_factory=lambda: list(DEFAULT_FILLER_WORDS))
    reference_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_REFERENCE_KEYWORDS))

    def enhance(self, raw: str) -> str:
        """
        Return the search-optimized form of `raw`.

        Example:
            "can you give me the answer for the chapter 0 exercises specifically 0.3?"
            -> "the chapter 0 exercises 0.3 0 0.3"
        """
        q = raw.strip().rstrip("?").strip()
        q = self._strip_prefix(q)
        q = self._strip_trailing(q)
        q = self._drop_filler_words(q)

        refs = self.extract_references(q)
        if refs:
            tail = " ".join(dict.fromkeys(refs))
            q = f"{q} {tail}" if q else tail
        return q

    def rewrite(self, query: str) -> Dict[str, str]:
        """Original and enhanced forms, keyed like the retrievers consume them."""
        base = query.strip()
        enhanced = self.enhance(base)
        return {
            "original": base,
            "keyword_query": enhanced,
            "semantic_query": enhanced,
        }

    def extract_references(self, query: str) -> List[str]:
        """Numeric tokens that directly follow a reference keyword."""
        keywords = {k.lower() for k in self.reference_keywords}
        tokens = query.split()
        refs: List[str] = []
        for word, nxt in zip(tokens, tokens[1:]):
            if word.strip(_EDGE_PUNCT).lower() not in keywords:
                continue
            ref = nxt.strip(_EDGE_PUNCT)
            if any(c.isdigit() for c in ref):
                refs.append(ref)
        return refs

    def _strip_prefix(self, q: str) -> str:
        lower = q.lower()
        for prefix in self.filler_prefixes:
            if not lower.startswith(prefix):
                continue
            rest = q[len(prefix) :]
            # "what is theory" must not lose "the" from "theory"
            if rest and (rest[0].isalnum() or rest[0] == "_"):
                continue
            rest = rest.strip()
            if rest:
                return rest
        return q

    def _strip_trailing(self, q: str) -> str:
        lower = q.lower()
        for suffix in self.trailing_fillers:
            if lower.endswith(suffix):
                return q[: -len(suffix)].strip()
        return q

    def _drop_filler_words(self, q: str) -> str:
        if not self.filler_words:
            return q
        fillers = {w.lower() for w in self.filler_words}
        kept = [tok for tok in q.split() if tok.strip(_EDGE_PUNCT).lower() not in fillers]
        return _SPACES_RE.sub(" ", " ".join(kept)).strip()


_default_rewriter = QueryRewriter()


def enhance_query(raw: str) -> str:
    """Enhance a query with the default rule set."""
    return _default_rewriter.enhance(raw)
