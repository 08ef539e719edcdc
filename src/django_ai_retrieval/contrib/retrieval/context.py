"""
Context assembly for ranked search results.

Turns ranked results into a single block of text that fits a character
budget, ready to be spliced into a prompt. The ellipsis that marks a
truncated passage is counted against the budget, so the assembled text is
never longer than max_chars.
"""

import dataclasses
import logging

from .schema import SearchResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 4000
DEFAULT_PREAMBLE = "Relevant information for the query:\n\n"
DEFAULT_MIN_TRUNCATED_CHARS = 200
DEFAULT_CONDENSE_RATIO = 2.0
DEFAULT_PREVIEW_CHARS = 300

ELLIPSIS = "..."
SECTION_END = "\n\n"


class ContextAssembler:
    def __init__(
        self,
        *,
        preamble: str = DEFAULT_PREAMBLE,
        min_truncated_chars: int = DEFAULT_MIN_TRUNCATED_CHARS,
        condense_ratio: float | None = DEFAULT_CONDENSE_RATIO,
        preview_chars: int = DEFAULT_PREVIEW_CHARS,
    ):
        self.preamble = preamble
        self.min_truncated_chars = min_truncated_chars
        self.condense_ratio = condense_ratio
        self.preview_chars = preview_chars

    def section_header(self, result: SearchResult) -> str:
        if result.direct_match:
            return f"### Content from {result.document_name} (direct match):\n"
        return f"### Excerpt from {result.document_name} (relevance: {result.score:.2f}):\n"

    def render_section(self, result: SearchResult) -> str:
        return f"{self.section_header(result)}{result.content}{SECTION_END}"

    def preview(self, content: str) -> str:
        if len(content) <= self.preview_chars:
            return content
        return content[: self.preview_chars] + ELLIPSIS

    def condense(self, results: list[SearchResult]) -> list[SearchResult]:
        """Cite each document once, with every passage cut to a preview.

        A document keeps the rank and score of its best (first) result.
        """
        grouped: dict[str, list[SearchResult]] = {}
        for result in results:
            grouped.setdefault(result.document_id, []).append(result)

        return [
            dataclasses.replace(
                group[0],
                content="\n\n".join(self.preview(result.content) for result in group),
            )
            for group in grouped.values()
        ]

    def needs_condensing(self, results: list[SearchResult], max_chars: int) -> bool:
        if self.condense_ratio is None:
            return False
        naive_length = len(self.preamble) + sum(
            len(self.render_section(result)) for result in results
        )
        return naive_length > max_chars * self.condense_ratio

    def assemble(self, results: list[SearchResult], max_chars: int) -> str:
        """Render results in rank order without exceeding max_chars.

        Returns an empty string when there is nothing relevant, or when not
        even a truncated first section fits the budget.
        """
        if not results:
            return ""

        if self.needs_condensing(results, max_chars):
            logger.debug("Condensing context to fit the character budget")
            results = self.condense(results)

        sections = []
        total_chars = len(self.preamble)

        for result in results:
            section = self.render_section(result)
            if total_chars + len(section) <= max_chars:
                sections.append(section)
                total_chars += len(section)
                continue

            # The next section overflows: add a truncated version and stop
            header = self.section_header(result)
            available = (
                max_chars - total_chars - len(header) - len(ELLIPSIS) - len(SECTION_END)
            )
            if available > 0 and (not sections or available >= self.min_truncated_chars):
                truncated = f"{header}{result.content[:available]}{ELLIPSIS}{SECTION_END}"
                sections.append(truncated)
                total_chars += len(truncated)
            break

        if not sections:
            logger.debug(f"No section fits within {max_chars} characters")
            return ""

        logger.debug(
            f"Generated context with {total_chars} characters from {len(sections)} passages"
        )
        return self.preamble + "".join(sections)
