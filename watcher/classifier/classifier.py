"""
watcher/classifier/classifier.py
Transcript → LLM → validated ClassifiedItems.

A failed call or an unusable envelope is a whole-batch failure
(ClassifierError): the caller keeps its cursor and retries next cycle.
Per-item problems only drop that item.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from watcher.classifier.item_parser import parse_envelope, validate_items
from watcher.classifier.prompt import build_prompt
from watcher.context.transcript import Transcript
from watcher.llm.base import LLMAdapter
from watcher.models.record import ClassificationResult

logger = logging.getLogger(__name__)


class Classifier:

    def __init__(
        self,
        llm:    LLMAdapter,
        clock:  Callable[[], datetime] = datetime.now,
    ):
        self.llm   = llm
        self.clock = clock

    def classify(self, transcript: Transcript, now: Optional[datetime] = None) -> ClassificationResult:
        """
        Raises ClassifierNetworkError / ClassifierParseError on batch failure.
        """
        now    = now or self.clock()
        prompt = build_prompt(transcript, now)
        logger.debug(f"LLM prompt:\n{prompt}")

        start = time.perf_counter()
        raw   = self.llm.chat(prompt)
        logger.debug(f"LLM response ({time.perf_counter() - start:.1f}s):\n{raw}")

        verdicts = validate_items(parse_envelope(raw), now)
        result = ClassificationResult(
            items        = [v.item for v in verdicts if v.accepted],
            rejected     = [v for v in verdicts if not v.accepted],
            raw_response = raw,
        )
        logger.info(
            f"Classifier: {len(result.items)} item(s) accepted, "
            f"{len(result.rejected)} rejected"
        )
        return result
