"""Pick the worksheet question out of OCR'd screen text.

Photos of a worksheet or laptop screen usually contain UI chrome (chat
prompts, buttons, disclaimers) around the actual problem. Lines are scored
for "question-ness", grouped into vertical blocks, and the best-scoring block
is returned as plain text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

MIN_CONFIDENCE = 0.35
HIGH_CONFIDENCE = 0.85
BLOCK_GAP = 0.06

DOMAIN_KEYWORDS = (
    "mean", "median", "mode",
    "range", "iqr", "interquartile",
    "probability", "percent", "percentage",
    "standard deviation", "variance",
    "minutes", "data", "time", "studying",
    "question", "statistical", "sample",
    "distribution",
)

UI_CHROME_PHRASES = (
    "chatgpt can make mistakes",
    "want another one",
    "harder?",
    "multiple choice?",
    "with a graph",
    "just let me know",
    "send a message",
)

_NUMBERED_RE = re.compile(r"^\d+\.")


@dataclass(frozen=True)
class BoundingBox:
    """Normalized rectangle with the origin at the bottom-left (y grows upward)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2.0


@dataclass(frozen=True)
class RecognizedLine:
    text: str
    confidence: float
    box: BoundingBox


@dataclass
class ScoredLine:
    line: RecognizedLine
    score: int
    digit_count: int


@dataclass
class TextBlock:
    lines: List[ScoredLine] = field(default_factory=list)

    @property
    def total_score(self) -> int:
        return sum(item.score for item in self.lines)

    @property
    def total_digits(self) -> int:
        return sum(item.digit_count for item in self.lines)

    def text(self) -> str:
        return "\n".join(item.line.text for item in self.lines)


class TextBlockSelector:
    """Greedy single-pass clustering plus scoring over recognized lines."""

    def __init__(
        self,
        *,
        min_confidence: float = MIN_CONFIDENCE,
        gap_threshold: float = BLOCK_GAP,
        keywords: Sequence[str] = DOMAIN_KEYWORDS,
        chrome_phrases: Sequence[str] = UI_CHROME_PHRASES,
    ) -> None:
        self.min_confidence = min_confidence
        self.gap_threshold = gap_threshold
        self.keywords = tuple(keywords)
        self.chrome_phrases = tuple(chrome_phrases)

    def select(self, lines: Iterable[RecognizedLine]) -> str:
        """Return the text of the most question-like block, top to bottom."""
        filtered = [line for line in lines if line.confidence >= self.min_confidence]
        if not filtered:
            return ""

        # Higher min_y is higher on the page.
        ordered = sorted(filtered, key=lambda line: line.box.min_y, reverse=True)
        blocks = self.cluster([self.score(line) for line in ordered])

        best = None
        for block in blocks:
            if block.total_score <= 0:
                continue
            if best is None or (block.total_score, block.total_digits) > (best.total_score, best.total_digits):
                best = block

        if best is None:
            return "\n".join(line.text for line in ordered)
        return best.text()

    def score(self, line: RecognizedLine) -> ScoredLine:
        lower = line.text.lower()
        digits = sum(1 for ch in lower if ch.isdigit())
        length = max(len(lower), 1)
        density = digits / length

        score = 0
        if density >= 0.5:
            score += 3
        elif density >= 0.2:
            score += 2
        elif digits > 0:
            score += 1

        if any(keyword in lower for keyword in self.keywords):
            score += 3
        if _NUMBERED_RE.match(lower):
            score += 2
        if "?" in lower:
            score += 2
        if any(phrase in lower for phrase in self.chrome_phrases):
            score -= 4
        if length <= 2 and digits == 0:
            score -= 2
        if line.confidence >= HIGH_CONFIDENCE:
            score += 1

        return ScoredLine(line=line, score=score, digit_count=digits)

    def cluster(self, scored: Sequence[ScoredLine]) -> List[TextBlock]:
        """Split top-to-bottom lines wherever the midpoint gap exceeds the threshold."""
        blocks: List[TextBlock] = []
        current = TextBlock()
        previous: ScoredLine | None = None
        for item in scored:
            if previous is not None:
                gap = abs(item.line.box.mid_y - previous.line.box.mid_y)
                if gap > self.gap_threshold:
                    blocks.append(current)
                    current = TextBlock()
            current.lines.append(item)
            previous = item
        if current.lines:
            blocks.append(current)
        return blocks


def select_problem_text(lines: Iterable[RecognizedLine]) -> str:
    return TextBlockSelector().select(lines)
