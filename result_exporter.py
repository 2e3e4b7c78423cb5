"""
result_exporter.py – Walks a finished run's result tree and exports each
test case to TestLink.

The exporter receives runner events: ``test_started`` / ``test_output``
fill a single output slot which is attached to the next completed test,
and ``run_finished`` hands over the root of the result tree.  Every leaf
of that tree is one test case; its fixture is the qualified name minus the
last dotted segment, and the fixture's :class:`FixtureConfig` decides
where (and whether) the result is recorded.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from adaptor import TestLinkAdaptor
from models import ExportSummary, FixtureConfig, TestResult
from reporter import ResultReporter
from testlink_client import TestLinkError

logger = logging.getLogger("testlink-exporter")


def extract_fixture_name(full_name: str) -> str:
    """Strip the test name off a fully qualified ``fixture.test`` name."""
    index = full_name.rfind(".")
    if index < 1:
        return ""
    return full_name[:index]


def case_name_for(result: TestResult) -> str:
    """Name under which *result* is filed in TestLink.

    Parameterised tests report only their parameter display name, so the
    method name is put in front of it.
    """
    if result.method_name and result.name != result.method_name:
        return f"{result.method_name}.{result.name}"
    return result.name


class ResultExporter:
    """Exports runner results through a :class:`TestLinkAdaptor`."""

    def __init__(
        self,
        adaptor: TestLinkAdaptor,
        fixtures: Mapping[str, FixtureConfig] | None = None,
        default: FixtureConfig | None = None,
    ) -> None:
        self._adaptor = adaptor
        self._reporter = ResultReporter(adaptor)
        self._fixtures: dict[str, FixtureConfig] = dict(fixtures or {})
        self._default = default
        self._current_output = ""
        self._summary = ExportSummary()

    # ── Runner events ───────────────────────────────────────────────────

    def test_started(self) -> None:
        self._current_output = ""

    def test_output(self, text: str) -> None:
        self._current_output = text

    def run_finished(self, root: TestResult) -> ExportSummary:
        logger.info("Test execution finished, starting exporter")
        self._summary = ExportSummary()
        self._process(root)
        logger.info("Exporter finished!")
        return self._summary

    # ── Tree walk ───────────────────────────────────────────────────────

    def config_for(self, fixture_name: str) -> FixtureConfig | None:
        return self._fixtures.get(fixture_name, self._default)

    def _process(self, result: TestResult) -> None:
        logger.debug("Process results for '%s'", result.name)
        if result.has_results:
            for child in result.children:
                self._process(child)
            return

        if result.output is not None:
            self.test_output(result.output)

        fixture_name = extract_fixture_name(result.full_name)
        logger.debug("Processing results for test %s in fixture: %s", result.name, fixture_name)
        if not fixture_name:
            self._current_output = ""
            return
        config = self.config_for(fixture_name)
        try:
            if config is None:
                logger.error("Unable to export results for %s: no configuration available", fixture_name)
                self._summary.skipped_count += 1
            elif not config.export_enabled:
                logger.warning("Export skipped as enable parameter is set to false or missing")
                self._summary.skipped_count += 1
            else:
                self._report(result, config, config.test_suite or fixture_name)
        finally:
            self._current_output = ""

    def _report(self, result: TestResult, config: FixtureConfig, suite_path: str) -> None:
        name = case_name_for(result)
        try:
            self._adaptor.create_suites = config.create_suites
            self._adaptor.set_connection(config.connection)
            if self._adaptor.basic_connection_valid:
                self._adaptor.set_hierarchy(config.selection(suite_path))

            if not self._adaptor.connection_valid:
                logger.warning("Failed to export result for test case %s", name)
                self._summary.failed.append(name)
                return

            test_case_id = self._adaptor.ensure_test_case(name, suite_path, result.description or "")
            if not test_case_id:
                self._summary.failed.append(name)
                return

            logger.info("Exporting result for test case %s", name)
            sent = self._reporter.send(
                test_case_id, result.state, result.message, self._current_output
            )
            if sent.status:
                self._summary.reported_ids.append(test_case_id)
                outcome = result.state.value
                self._summary.outcomes[outcome] = self._summary.outcomes.get(outcome, 0) + 1
                logger.info(
                    'Reported result (TCName="%s", TestPlan="%s", Status="%s").',
                    name, config.test_plan, result.state.value,
                )
            else:
                self._summary.failed.append(name)
        except TestLinkError as exc:
            logger.error("Failed to export test case '%s'. %s", name, exc)
            self._summary.failed.append(name)
        except Exception as exc:
            logger.error("Unexpected error exporting '%s': %s", name, exc, exc_info=True)
            self._summary.failed.append(name)
