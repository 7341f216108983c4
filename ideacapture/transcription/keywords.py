"""Finish keyword detection for ending a session by voice."""

import re
import logging
from typing import Iterable, List

logger = logging.getLogger(__name__)


class FinishKeywordDetector:
    """Predicate telling whether a hypothesis asks to end the session.

    ASCII keywords are matched on word boundaries so "fin" does not fire on
    "final". Other keywords are matched as plain substrings since Japanese
    text has no spaces.
    """

    def __init__(self, keywords: Iterable[str]):
        self.keywords: List[str] = [k.strip().lower() for k in keywords if k and k.strip()]
        self._patterns = [self._compile(k) for k in self.keywords]
        logger.debug(f"FinishKeywordDetector initialized with {len(self.keywords)} keywords")

    @staticmethod
    def _compile(keyword: str) -> "re.Pattern":
        if keyword.isascii():
            return re.compile(r"\b" + re.escape(keyword) + r"\b")
        return re.compile(re.escape(keyword))

    def __call__(self, text: str) -> bool:
        """Return True if `text` contains a finish keyword."""
        if not text:
            return False
        lowered = text.lower()
        return any(pattern.search(lowered) for pattern in self._patterns)
