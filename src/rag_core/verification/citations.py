"""Citation validation: every returned citation must literally occur in its source chunk."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from rag_core.models.domain import ProposedCitation, RerankedChunk
from rag_core.models.schemas import Citation, TextSpan
from rag_core.observability.logger import get_logger

logger = get_logger("citations")

DOWNWEIGHT_FACTOR = 0.5


@dataclass
class ValidationReport:
    valid: list[Citation] = field(default_factory=list)
    dropped: list[ProposedCitation] = field(default_factory=list)
    dangling: list[ProposedCitation] = field(default_factory=list)
    downweighted: int = 0

    @property
    def failures(self) -> int:
        return len(self.dropped) + len(self.dangling)


class CitationValidator:
    """Checks proposed citations against the chunks used for synthesis.

    - Source id not in the synthesis set: dangling, reported and removed.
    - Text found case-insensitively: kept with its span.
    - Text found only after collapsing whitespace: the literal source
      passage replaces the proposed text and confidence is halved.
    - Otherwise: dropped.
    """

    def validate(
        self,
        citations: Sequence[ProposedCitation],
        chunks: Sequence[RerankedChunk],
    ) -> ValidationReport:
        by_id = {c.id: c for c in chunks}
        report = ValidationReport()

        for proposed in citations:
            chunk = by_id.get(proposed.source_id)
            if chunk is None:
                report.dangling.append(proposed)
                logger.warning("dangling_citation", source_id=proposed.source_id)
                continue

            text = proposed.text.strip()
            if not text:
                report.dropped.append(proposed)
                continue

            confidence = max(0.0, min(1.0, proposed.confidence))
            literal = re.search(re.escape(text), chunk.content, re.IGNORECASE)
            if literal is not None:
                start, end = literal.span()
            else:
                match = _whitespace_insensitive_search(text, chunk.content)
                if match is None:
                    report.dropped.append(proposed)
                    logger.info("citation_dropped", source_id=proposed.source_id, text_len=len(text))
                    continue
                start, end = match
                confidence *= DOWNWEIGHT_FACTOR
                report.downweighted += 1

            report.valid.append(
                Citation(
                    id=f"cite_{len(report.valid) + 1}",
                    text=chunk.content[start:end],
                    source_id=chunk.id,
                    confidence=confidence,
                    spans=[TextSpan(start=start, end=end)],
                )
            )

        logger.info(
            "citations_validated",
            proposed=len(citations),
            valid=len(report.valid),
            dropped=len(report.dropped),
            dangling=len(report.dangling),
            downweighted=report.downweighted,
        )
        return report


def _whitespace_insensitive_search(text: str, content: str) -> tuple[int, int] | None:
    pattern = r"\s+".join(re.escape(part) for part in text.split())
    match = re.search(pattern, content, flags=re.IGNORECASE)
    if match is None:
        return None
    return match.start(), match.end()
