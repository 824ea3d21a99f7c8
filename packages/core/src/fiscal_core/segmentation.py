"""Splitting a document into per-entity spans.

An income statement PDF holds one block per worker, each introduced by
"Nome Completo: NAME - ID". A multi-invoice PDF holds one DANFSe per
invoice. ``Segmenter`` finds the anchors, discards the ones that belong to
document headers, and cuts the text from each anchor to the next.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import structlog

from .text import fold

logger = structlog.get_logger()

# "Nome Completo: JOAO DA SILVA - 12345", with any dash variant.
WORKER_ANCHOR = re.compile(
    r"Nome\s+Completo\s*[:;]?\s*(?P<name>[^\-–—\n]*?)\s*[-–—]\s*(?P<id>\d+)",
    re.IGNORECASE,
)
# Markers of the paying company header, which uses the same label.
WORKER_HEADER_MARKERS: tuple[str, ...] = (
    "Fonte Pagadora",
    "Nome Empresarial",
    "Pessoa Jurídica",
)
# Name printed after the id when the anchor's name slot is empty:
# optional CPF, then a run of upper-case words.
WORKER_NAME_LOOKAHEAD = re.compile(
    r"\s*(?:\d{3}\.\d{3}\.\d{3}-\d{2}\s*)?(?P<name>(?:[A-ZÀ-ÖØ-Þ]+\b[ \t]*)+)"
)

# The "DANFSe" title and the "Documento Auxiliar" subtitle of one header
# count as a single anchor.
INVOICE_ANCHOR = re.compile(
    r"DANFS-?e\b(?:[^\n]*\n\s*Documento\s+Auxiliar\s+da\s+NFS-e)?|Documento\s+Auxiliar\s+da\s+NFS-e",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class TextSpan:
    """The text of one entity.

    ``end_offset`` is the start of the next entity, or the text length.
    """

    start_offset: int
    end_offset: int
    text: str
    name: str = ""
    identifier: str = ""


class Segmenter:
    """Finds entity anchors and cuts the text between them.

    Args:
        anchor: Regex marking the start of an entity. Optional named groups
            ``name`` and ``id`` are carried onto the spans.
        header_markers: Text that, found just before an anchor, marks it as
            part of a document header.
        name_lookahead: Regex applied right after the anchor when its name
            group is empty.
        context_window: Characters before the anchor checked for markers.
        evidence: Predicate a span must satisfy to be kept.
    """

    def __init__(
        self,
        anchor: Union[str, re.Pattern],
        *,
        header_markers: Sequence[str] = (),
        name_lookahead: Optional[re.Pattern] = None,
        context_window: int = 50,
        evidence: Optional[Callable[[TextSpan], bool]] = None,
    ):
        self.anchor = re.compile(anchor) if isinstance(anchor, str) else anchor
        self.header_markers = tuple(fold(marker) for marker in header_markers)
        self.name_lookahead = name_lookahead
        self.context_window = context_window
        self.evidence = evidence

    def segment(self, text: str) -> list[TextSpan]:
        """Return the surviving entity spans in document order.

        No anchor in the text yields an empty list.
        """
        anchors = [a for a in (self._accept(text, m) for m in self.anchor.finditer(text)) if a]
        spans = []
        for i, (start, name, identifier) in enumerate(anchors):
            end = anchors[i + 1][0] if i + 1 < len(anchors) else len(text)
            spans.append(
                TextSpan(
                    start_offset=start,
                    end_offset=end,
                    text=text[start:end],
                    name=name,
                    identifier=identifier,
                )
            )

        if self.evidence is not None:
            kept = [span for span in spans if self.evidence(span)]
            for span in spans:
                if span not in kept:
                    logger.info("span_without_evidence", identifier=span.identifier, name=span.name)
            spans = kept

        logger.debug("text_segmented", anchors=len(anchors), spans=len(spans))
        return spans

    def _accept(self, text: str, match: re.Match) -> Optional[tuple[int, str, str]]:
        groups = match.groupdict()
        name = (groups.get("name") or "").strip()
        identifier = (groups.get("id") or "").strip()

        context = fold(text[max(0, match.start() - self.context_window):match.start()])
        for marker in self.header_markers:
            if marker in context:
                logger.debug("anchor_discarded", reason="header_marker", marker=marker, identifier=identifier)
                return None

        if "id" in groups and not name and (len(identifier) >= 9 or len(identifier) <= 2):
            logger.debug("anchor_discarded", reason="tax_id_fragment", identifier=identifier)
            return None

        if not name and self.name_lookahead is not None:
            found = self.name_lookahead.match(text, match.end())
            if found:
                name = found.group("name").strip()

        return match.start(), name, identifier


def worker_segmenter(
    *,
    context_window: int = 50,
    evidence: Optional[Callable[[TextSpan], bool]] = None,
) -> Segmenter:
    """Segmenter for income statements, one span per worker."""
    return Segmenter(
        WORKER_ANCHOR,
        header_markers=WORKER_HEADER_MARKERS,
        name_lookahead=WORKER_NAME_LOOKAHEAD,
        context_window=context_window,
        evidence=evidence,
    )


def invoice_segmenter() -> Segmenter:
    """Segmenter for documents holding several DANFSe."""
    return Segmenter(INVOICE_ANCHOR)
