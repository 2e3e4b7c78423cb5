"""
reporter.py – Maps runner result states onto TestLink outcomes and sends them.

TestLink only knows three verdicts, so the runner's richer taxonomy is
folded as follows:

  success            → Pass
  failure / error    → Fail
  skipped / ignored  → Blocked  (with a marker appended to the notes)
  anything else      → Blocked
"""

from __future__ import annotations

import logging

from adaptor import TestLinkAdaptor
from models import GeneralResult, Outcome, ResultState

logger = logging.getLogger("testlink-exporter")

SKIPPED_MARKER = "++++ SKIPPED +++"
IGNORED_MARKER = "++++ IGNORED +++"

_OUTCOMES: dict[ResultState, Outcome] = {
    ResultState.SUCCESS: Outcome.PASS,
    ResultState.FAILURE: Outcome.FAIL,
    ResultState.ERROR: Outcome.FAIL,
}

_MARKERS: dict[ResultState, str] = {
    ResultState.SKIPPED: SKIPPED_MARKER,
    ResultState.IGNORED: IGNORED_MARKER,
}


def build_notes(message: str = "", output: str = "") -> str:
    """Failure message followed by the captured output, one per line."""
    return "".join(f"{part}\n" for part in (message or "", output or ""))


def map_result_state(state: ResultState, notes: str = "") -> tuple[Outcome, str]:
    """Return the TestLink outcome for *state* and the notes to send with it."""
    outcome = _OUTCOMES.get(state, Outcome.BLOCKED)
    marker = _MARKERS.get(state)
    if marker:
        notes = f"{notes}{marker}\n"
    return outcome, notes


class ResultReporter:
    """Sends one test result through a :class:`TestLinkAdaptor`."""

    def __init__(self, adaptor: TestLinkAdaptor) -> None:
        self._adaptor = adaptor

    def send(
        self,
        test_case_id: int,
        state: ResultState,
        message: str = "",
        output: str = "",
    ) -> GeneralResult:
        outcome, notes = map_result_state(state, build_notes(message, output))
        result = self._adaptor.report(test_case_id, outcome, notes)
        if not result.status:
            logger.warning("Failed to export result. TestLink reported: '%s'", result.message)
        else:
            logger.debug("Recorded %s for test case #%s", outcome.name, test_case_id)
        return result
