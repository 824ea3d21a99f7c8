"""Field extraction from normalized text.

``FieldExtractor`` evaluates the strategy list of an ``ExtractionPattern``
in order and returns the first value found. PDF text layers put values
before or after their labels depending on the column layout, so the same
label is tried both ways, first on its own line and then within a window
of characters around it.
"""

import re
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional

import structlog

from .config import ExtractionConfig
from .patterns import SEPARATOR, ExtractionPattern, Strategy

logger = structlog.get_logger()


@lru_cache(maxsize=512)
def _compile(pattern: str, flags: int) -> re.Pattern:
    return re.compile(pattern, flags)


class FieldExtractor:
    """Applies extraction patterns to a span of text.

    Example:
        extractor = FieldExtractor()
        values = extractor.extract_all(span.text, INFORME_PATTERNS)
    """

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()
        self.window = self.config.relaxed_window
        self._strategies: dict[Strategy, Callable[[str, ExtractionPattern], Optional[str]]] = {
            Strategy.SAME_LINE_BEFORE: self._same_line_before,
            Strategy.SAME_LINE_AFTER: self._same_line_after,
            Strategy.WINDOW_BEFORE: self._window_before,
            Strategy.WINDOW_AFTER: self._window_after,
            Strategy.RELAXED: self._relaxed,
        }

    def find(self, text: str, pattern: ExtractionPattern) -> Optional[tuple[Strategy, str]]:
        """Return the winning strategy and the raw captured value, if any."""
        for strategy in pattern.strategies:
            raw = self._strategies[strategy](text, pattern)
            if raw is not None:
                return strategy, raw
        return None

    def extract(self, text: str, pattern: ExtractionPattern) -> Any:
        """Extract one field, or its typed default when nothing matches."""
        found = self.find(text, pattern)
        if found is None:
            logger.debug("field_not_found", field=pattern.name)
            return pattern.default
        strategy, raw = found
        logger.debug("field_extracted", field=pattern.name, strategy=strategy.value, raw=raw)
        return pattern.process(raw)

    def extract_all(self, text: str, patterns: Iterable[ExtractionPattern]) -> dict[str, Any]:
        return {pattern.name: self.extract(text, pattern) for pattern in patterns}

    # Strategies. Each returns the raw captured value or None.

    def _labels(self, text: str, pattern: ExtractionPattern) -> Iterable[re.Match]:
        return _compile(pattern.label, pattern.flags).finditer(text)

    def _same_line_before(self, text: str, pattern: ExtractionPattern) -> Optional[str]:
        # Rejected when the label is itself directly followed by a value:
        # in that layout the value before belongs to the previous label.
        regex = _compile(
            rf"{pattern.value}{SEPARATOR}(?>{pattern.label})(?!{SEPARATOR}(?:R\$[ \t]*)?{pattern.value})",
            pattern.flags,
        )
        for match in regex.finditer(text):
            if _usable(match.group(1)):
                return match.group(1)
        return None

    def _same_line_after(self, text: str, pattern: ExtractionPattern) -> Optional[str]:
        for match in _compile(pattern.primary, pattern.flags).finditer(text):
            if _usable(match.group(1)):
                return match.group(1)
        return None

    def _window_before(self, text: str, pattern: ExtractionPattern) -> Optional[str]:
        value_re = _compile(pattern.value, pattern.flags)
        for label in self._labels(text, pattern):
            start = max(0, label.start() - self.window)
            candidates = [
                m.group(1)
                for m in value_re.finditer(text, start, label.start())
                if _usable(m.group(1))
            ]
            if candidates:
                return candidates[-1]
        return None

    def _window_after(self, text: str, pattern: ExtractionPattern) -> Optional[str]:
        value_re = _compile(pattern.value, pattern.flags)
        for label in self._labels(text, pattern):
            limit = label.end() + self.window
            for m in value_re.finditer(text, label.end()):
                if m.start() > limit:
                    break
                if _usable(m.group(1)):
                    return m.group(1)
        return None

    def _relaxed(self, text: str, pattern: ExtractionPattern) -> Optional[str]:
        if not pattern.relaxed:
            return None
        match = _compile(pattern.relaxed, pattern.flags).search(text)
        if match and _usable(match.group(1)):
            return match.group(1)
        return None


def _usable(raw: Optional[str]) -> bool:
    return raw is not None and raw.strip() != ""
