# _utils/loop_detector.py

import logging
import re

from ..errors import RunawayOutputError

logger = logging.getLogger(__name__)

# A run of 50+ characters immediately repeated at least twice more
_LONG_REPEAT = re.compile(r"(.{50,})\1{2,}")

# Filler openers repeated within a short span
_FILLER_REPEAT = re.compile(
    r"(Analisando|Considerando|Avaliando|Analyzing|Considering|Evaluating)"
    r".{0,100}"
    r"(Analisando|Considerando|Avaliando|Analyzing|Considering|Evaluating)",
    re.IGNORECASE,
)

# The same JSON object emitted twice in a row
_JSON_REPEAT = re.compile(r"(\{[^}]{20,}\})\s*\1")

LOOP_PATTERNS: tuple[re.Pattern[str], ...] = (
    _LONG_REPEAT,
    _FILLER_REPEAT,
    _JSON_REPEAT,
)


class LoopDetector:
    """
    Watches a streamed response for degenerate repetition.

    Each chunk is appended to a sliding buffer that is scanned against
    ``LOOP_PATTERNS``. Every chunk that leaves the buffer matching counts as
    one detection; reaching ``max_detections`` raises ``RunawayOutputError``
    so the call can be abandoned without waiting for its timeout.

    Args:
        max_detections (int): Detections tolerated before aborting.
        window (int): Buffer length that triggers trimming.
        keep (int): Characters kept when the buffer is trimmed.
    """

    def __init__(
        self,
        *,
        max_detections: int = 3,
        window: int = 2000,
        keep: int = 1000,
    ) -> None:
        self._max_detections = max_detections
        self._window = window
        self._keep = keep
        self._buffer = ""
        self.detections = 0

    def feed(self, chunk: str) -> None:
        """
        Add a streamed chunk and scan the buffer.

        Raises:
            RunawayOutputError: When the detection budget is exhausted.
        """
        self._buffer += chunk

        for pattern in LOOP_PATTERNS:
            if pattern.search(self._buffer):
                self.detections += 1
                logger.warning(
                    "Repetition detected in model output (%d/%d): %s",
                    self.detections,
                    self._max_detections,
                    pattern.pattern,
                )
                if self.detections >= self._max_detections:
                    raise RunawayOutputError(
                        "Model output is looping; response abandoned",
                    )
                break

        if len(self._buffer) > self._window:
            self._buffer = self._buffer[-self._keep :]
