"""
models.py – Plain data-classes shared across every module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Outcome(str, Enum):
    """Execution status codes understood by TestLink."""

    PASS = "p"
    FAIL = "f"
    BLOCKED = "b"


class ResultState(str, Enum):
    """Result states produced by the test runner."""

    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"
    SKIPPED = "skipped"
    IGNORED = "ignored"
    NOT_RUNNABLE = "not_runnable"
    INCONCLUSIVE = "inconclusive"
    CANCELLED = "cancelled"


# ── Connection / hierarchy ──────────────────────────────────────────────

@dataclass(frozen=True)
class ConnectionParameters:
    """Endpoint and credentials for one TestLink server."""

    url: str
    dev_key: str
    user: str = ""


@dataclass(frozen=True)
class HierarchySelection:
    """Human-readable names selecting where results are recorded."""

    project: str
    test_plan: str
    suite_path: str = ""
    platform: str = ""
    build: str = ""


@dataclass
class ResolvedIds:
    """Numeric handles matching the currently accepted selection."""

    project_id: int = 0
    project_prefix: str = ""
    test_plan_id: int = 0
    platform_id: int = 0
    build_id: int = 0
    test_suite_id: int = 0


@dataclass
class HierarchyResolution:
    """Outcome of ``TestLinkAdaptor.set_hierarchy``; truthy on success."""

    ids: ResolvedIds = field(default_factory=ResolvedIds)
    error: str = ""

    def __bool__(self) -> bool:
        return not self.error


# ── Remote entities ─────────────────────────────────────────────────────

@dataclass
class TestProject:
    __test__ = False

    id: int
    name: str
    prefix: str = ""


@dataclass
class TestPlan:
    __test__ = False

    id: int
    name: str


@dataclass
class Platform:
    id: int
    name: str


@dataclass
class Build:
    id: int
    name: str
    active: bool = True
    is_open: bool = True


@dataclass
class TestSuite:
    __test__ = False

    id: int
    name: str
    parent_id: int = 0


@dataclass
class TestCaseRef:
    """A test case found by name; names are unique only inside a suite."""

    __test__ = False

    id: int
    name: str
    parent_id: int
    external_id: str = ""


@dataclass
class GeneralResult:
    """Status/message pair returned by TestLink write operations."""

    status: bool
    message: str = ""
    id: int = 0
    additional_info: dict = field(default_factory=dict)


# ── Runner side ─────────────────────────────────────────────────────────

@dataclass
class FixtureConfig:
    """Export settings attached to one test fixture."""

    connection: ConnectionParameters
    project: str
    test_plan: str
    platform: str = ""
    build: str = ""
    test_suite: str | None = None
    export_enabled: bool = True
    create_suites: bool = True

    def selection(self, suite_path: str) -> HierarchySelection:
        return HierarchySelection(
            project=self.project,
            test_plan=self.test_plan,
            suite_path=suite_path,
            platform=self.platform,
            build=self.build,
        )


@dataclass
class TestResult:
    """A node in the runner's result tree; leaves are single test cases."""

    __test__ = False

    name: str
    full_name: str = ""
    method_name: str = ""
    description: str = ""
    state: ResultState = ResultState.SUCCESS
    message: str = ""
    output: str | None = None
    children: list[TestResult] = field(default_factory=list)

    @property
    def has_results(self) -> bool:
        return bool(self.children)


@dataclass
class ExportSummary:
    """Summary returned after the whole result tree has been processed."""

    reported_ids: list[int] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped_count: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)
