"""Relevance-scored search over notes."""

import logging
import re
from typing import List, Optional, Sequence

from lumen_notes.models.schema import FieldHighlight, MatchSpan, Note, SearchResult

logger = logging.getLogger(__name__)

# Relevance weights
TITLE_PREFIX_SCORE = 100
TITLE_SCORE = 50
CONTENT_SCORE = 25
CATEGORY_SCORE = 30
TAG_SCORE = 35
PINNED_BONUS = 10
DELETED_PENALTY = 50

MAX_SUGGESTIONS = 10
MIN_SUGGESTION_WORD_LENGTH = 3
DEFAULT_EXCERPT_LENGTH = 150


class SearchService:
    """Service for ranking, highlighting and suggesting notes.

    All methods are pure: they take the note collection as an argument and
    never touch storage.
    """

    @staticmethod
    def find_matches(text: Optional[str], term: str) -> List[MatchSpan]:
        """Every non-overlapping case-insensitive occurrence, left to right."""
        if not text or not term:
            return []
        pattern = re.compile(re.escape(term), re.IGNORECASE)
        return [
            MatchSpan(start=m.start(), end=m.end(), matched_text=m.group(0))
            for m in pattern.finditer(text)
        ]

    @staticmethod
    def score(note: Note, term: str) -> int:
        """Relevance of ``note`` for ``term``.

        Title matches weigh most, with a bonus when the title starts with
        the term. Every matching tag counts separately. Pinned notes get a
        small boost and deleted notes a penalty, so a deleted note matching
        only its content scores below zero.
        """
        needle = term.lower()
        total = 0

        position = note.title.lower().find(needle)
        if position == 0:
            total += TITLE_PREFIX_SCORE
        elif position > 0:
            total += TITLE_SCORE

        if needle in note.content.lower():
            total += CONTENT_SCORE

        if note.category and needle in note.category.lower():
            total += CATEGORY_SCORE

        total += TAG_SCORE * sum(1 for tag in note.tags if needle in tag.lower())

        if note.is_pinned:
            total += PINNED_BONUS
        if note.is_deleted:
            total -= DELETED_PENALTY

        return total

    def highlights(self, note: Note, term: str) -> List[FieldHighlight]:
        """Match spans per field; fields without matches are omitted."""
        fields = [("title", note.title), ("content", note.content)]
        if note.category:
            fields.append(("category", note.category))
        fields.extend((f"tags[{i}]", tag) for i, tag in enumerate(note.tags))

        result = []
        for name, text in fields:
            matches = self.find_matches(text, term)
            if matches:
                result.append(FieldHighlight(field=name, matches=matches))
        return result

    def search(self, notes: Sequence[Note], term: str) -> List[SearchResult]:
        """Rank notes by relevance for ``term``.

        Notes scoring zero or less are dropped; ties keep their input order.
        A blank term returns every note unranked with a score of zero.
        """
        if not term or not term.strip():
            return [SearchResult(note=note, score=0) for note in notes]

        results = []
        for note in notes:
            note_score = self.score(note, term)
            if note_score <= 0:
                continue
            results.append(
                SearchResult(
                    note=note,
                    score=note_score,
                    highlights=self.highlights(note, term),
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        logger.debug(f"Search for '{term}' matched {len(results)} of {len(notes)} notes")
        return results

    @staticmethod
    def suggest(notes: Sequence[Note], partial: str) -> List[str]:
        """Completion candidates from title words, categories and tags.

        Title words shorter than three characters are ignored. Results are
        de-duplicated, sorted and capped at ten. A blank partial matches
        every candidate.
        """
        needle = (partial or "").lower()
        candidates = set()

        for note in notes:
            for word in note.title.split():
                if len(word) >= MIN_SUGGESTION_WORD_LENGTH and needle in word.lower():
                    candidates.add(word)
            if note.category and needle in note.category.lower():
                candidates.add(note.category)
            for tag in note.tags:
                if needle in tag.lower():
                    candidates.add(tag)

        return sorted(candidates)[:MAX_SUGGESTIONS]

    @staticmethod
    def excerpt(
        content: str, term: str, max_length: int = DEFAULT_EXCERPT_LENGTH
    ) -> str:
        """Window of ``content`` around the first match of ``term``.

        Without a match the start of the content is returned. Ellipses mark
        text cut off on either side.
        """
        if not content:
            return ""

        index = content.lower().find(term.lower()) if term else -1
        if index == -1:
            if len(content) <= max_length:
                return content
            return content[:max_length].rstrip() + "..."

        start = max(0, index - (max_length - len(term)) // 2)
        end = min(len(content), start + max_length)
        start = max(0, end - max_length)

        snippet = content[start:end].strip()
        if start > 0:
            snippet = "..." + snippet
        if end < len(content):
            snippet = snippet + "..."
        return snippet

    def highlight_terms(
        self,
        text: str,
        term: str,
        start_tag: str = "<mark>",
        end_tag: str = "</mark>",
    ) -> str:
        """Wrap every occurrence of ``term`` in ``text`` with the given tags."""
        matches = self.find_matches(text, term)
        if not matches:
            return text

        parts = []
        cursor = 0
        for match in matches:
            parts.append(text[cursor:match.start])
            parts.append(f"{start_tag}{match.matched_text}{end_tag}")
            cursor = match.end
        parts.append(text[cursor:])
        return "".join(parts)
