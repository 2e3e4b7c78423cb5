"""
adaptor.py – Resolves TestLink hierarchy names to ids and records results.

The adaptor keeps two validity flags:

* ``basic_connection_valid`` – the endpoint/dev-key pair answered a
  liveness check.
* ``project_data_valid`` – the last hierarchy selection (project, plan,
  platform, build, suite) resolved completely.

Results can only be recorded while both hold.  Resolved ids are cached per
name for the lifetime of a connection; changing the connection parameters
drops every cache.
"""

from __future__ import annotations

import logging
from typing import Callable

from models import (
    Build,
    ConnectionParameters,
    GeneralResult,
    HierarchyResolution,
    HierarchySelection,
    Outcome,
    ResolvedIds,
    TestProject,
)
from suite_manager import SuiteManager
from testlink_client import (
    TestLinkApiError,
    TestLinkClient,
    TestLinkConnectionError,
    TestLinkError,
)

logger = logging.getLogger("testlink-exporter")

NO_PLATFORM = 0


class ResolutionError(Exception):
    """A hierarchy component could not be resolved."""


class TestLinkAdaptor:
    """Single-session bridge between test results and one TestLink server."""

    __test__ = False

    def __init__(
        self,
        client_factory: Callable[[ConnectionParameters], TestLinkClient] = TestLinkClient,
        create_suites: bool = True,
    ) -> None:
        self._client_factory = client_factory
        self.create_suites = create_suites
        self._client: TestLinkClient | None = None
        self._suites: SuiteManager | None = None

        self._connection: ConnectionParameters | None = None
        self._selection: HierarchySelection | None = None
        self._ids = ResolvedIds()

        self.basic_connection_valid = False
        self.project_data_valid = False
        self.last_exception: Exception | None = None

        self._reset_caches()

    def _reset_caches(self) -> None:
        self._projects: dict[str, TestProject] = {}
        self._plans: dict[tuple[int, str], int] = {}
        self._platforms: dict[tuple[int, str], int] = {}
        self._builds: dict[tuple[int, str], Build] = {}

    # ── State ───────────────────────────────────────────────────────────

    @property
    def connection_valid(self) -> bool:
        """Can results be recorded right now?"""
        return self.basic_connection_valid and self.project_data_valid

    @property
    def ids(self) -> ResolvedIds:
        return self._ids

    @property
    def selection(self) -> HierarchySelection | None:
        return self._selection

    @property
    def client(self) -> TestLinkClient | None:
        return self._client

    # ── Connection ──────────────────────────────────────────────────────

    def set_connection(self, params: ConnectionParameters | None) -> bool:
        """Switch to *params*, contacting the server only when needed.

        Unchanged parameters on a valid connection make no call.  Unchanged
        parameters on an invalid connection re-run the liveness check and
        keep the caches; new parameters drop them.
        """
        if params is None:
            logger.error("No TestLink connection configured")
            self._connection = None
            self.basic_connection_valid = False
            self.project_data_valid = False
            return False

        if params == self._connection:
            if self.basic_connection_valid:
                return True
            logger.info("Re-checking TestLink connection at %s", params.url)
        else:
            self._connection = params
            self._client = self._client_factory(params)
            self._suites = SuiteManager(self._client)
            self._reset_caches()
            self._selection = None
            self._ids = ResolvedIds()
            self.project_data_valid = False
        self.last_exception = None

        try:
            alive = self._client.check_dev_key()
        except TestLinkError as exc:
            self.last_exception = exc
            logger.error("Failed to connect to TestLink at %s. Message was '%s'", params.url, exc)
            alive = False
        else:
            if not alive:
                logger.error("TestLink at %s rejected the developer key", params.url)

        self.basic_connection_valid = alive
        if not alive:
            self.project_data_valid = False
        return alive

    # ── Hierarchy ───────────────────────────────────────────────────────

    def set_hierarchy(self, selection: HierarchySelection) -> HierarchyResolution:
        """Resolve every component of *selection*, stopping at the first failure.

        Cached ids for other names are left alone whatever the outcome.
        """
        self.project_data_valid = False
        if not self.basic_connection_valid:
            return HierarchyResolution(error="No valid TestLink connection")

        try:
            ids = self._resolve(selection)
        except ResolutionError as exc:
            logger.error("%s", exc)
            return HierarchyResolution(error=str(exc))
        except TestLinkConnectionError as exc:
            self.last_exception = exc
            self.basic_connection_valid = False
            logger.error("Lost connection to TestLink while resolving %s: %s", selection, exc)
            return HierarchyResolution(error=str(exc))
        except TestLinkError as exc:
            self.last_exception = exc
            logger.error("TestLink refused to resolve %s: %s", selection, exc)
            return HierarchyResolution(error=str(exc))

        self._selection = selection
        self._ids = ids
        self.project_data_valid = True
        return HierarchyResolution(ids=ids)

    def _resolve(self, selection: HierarchySelection) -> ResolvedIds:
        project = self._resolve_project(selection.project)
        plan_id = self._resolve_test_plan(project, selection.test_plan)
        platform_id = self._resolve_platform(plan_id, selection)
        build = self._resolve_build(plan_id, selection)

        suite_id = 0
        if selection.suite_path:
            suite_id = self.resolve_or_create_suite(
                selection.suite_path, self.create_suites, project_id=project.id
            )
            if not suite_id:
                raise ResolutionError(
                    f"Test suite '{selection.suite_path}' was not found in project '{project.name}'"
                )

        return ResolvedIds(
            project_id=project.id,
            project_prefix=project.prefix,
            test_plan_id=plan_id,
            platform_id=platform_id,
            build_id=build.id,
            test_suite_id=suite_id,
        )

    def _resolve_project(self, name: str) -> TestProject:
        project = self._projects.get(name)
        if project is None:
            project = self._client.get_project_by_name(name)
            if project is None:
                raise ResolutionError(f"Test project '{name}' was not found in TestLink")
            self._projects[name] = project
        return project

    def _resolve_test_plan(self, project: TestProject, name: str) -> int:
        key = (project.id, name)
        if key not in self._plans:
            plans = self._client.get_project_test_plans(project.id)
            plan_id = next((p.id for p in plans if p.name == name), 0)
            if not plan_id:
                raise ResolutionError(
                    f"Test plan '{name}' was not found in project '{project.name}'"
                )
            self._plans[key] = plan_id
        return self._plans[key]

    def _resolve_platform(self, plan_id: int, selection: HierarchySelection) -> int:
        if not selection.platform:
            return NO_PLATFORM
        key = (plan_id, selection.platform)
        if key not in self._platforms:
            platforms = self._client.get_test_plan_platforms(plan_id)
            platform_id = next((p.id for p in platforms if p.name == selection.platform), 0)
            if not platform_id:
                raise ResolutionError(
                    f"Platform '{selection.platform}' was not found in project "
                    f"'{selection.project}' or is not assigned to test plan '{selection.test_plan}'"
                )
            self._platforms[key] = platform_id
        return self._platforms[key]

    def _resolve_build(self, plan_id: int, selection: HierarchySelection) -> Build:
        key = (plan_id, selection.build)
        build = self._builds.get(key)
        if build is None:
            builds = self._client.get_builds_for_test_plan(plan_id)
            if not builds:
                raise ResolutionError(
                    f"No builds available for project '{selection.project}' "
                    f"and test plan '{selection.test_plan}'"
                )
            if selection.build:
                build = next((b for b in builds if b.name == selection.build), None)
                if build is None:
                    raise ResolutionError(f"Build '{selection.build}' not found")
            else:
                build = builds[-1]
                logger.debug("Using default/latest build: %s", build.name)
            if not build.active or not build.is_open:
                raise ResolutionError(f"Build '{build.name}' is not active/open")
            self._builds[key] = build
        return build

    # ── Test suites ─────────────────────────────────────────────────────

    def resolve_or_create_suite(
        self, path: str, create_if_missing: bool = True, project_id: int | None = None
    ) -> int:
        """Return the id of the suite at the dotted *path*, or 0."""
        if self._suites is None or not self.basic_connection_valid:
            return 0
        project_id = project_id or self._ids.project_id
        if not project_id:
            return 0
        return self._suites.resolve(project_id, path, create_if_missing)

    # ── Test cases ──────────────────────────────────────────────────────

    def ensure_test_case(self, name: str, suite_path: str = "", description: str = "") -> int:
        """Return the id of test case *name* in *suite_path*, creating it if needed.

        A newly created test case is also added to the active test plan and
        platform.  Returns 0 when the test case cannot be prepared.
        """
        if not self.connection_valid:
            logger.warning("Cannot prepare test case '%s': connection not valid", name)
            return 0

        if suite_path:
            suite_id = self.resolve_or_create_suite(suite_path, self.create_suites)
        else:
            suite_id = self._ids.test_suite_id
        if not suite_id:
            logger.error("Cannot prepare test case '%s': no test suite '%s'", name, suite_path)
            return 0

        for ref in self._client.get_test_case_ids_by_name(name):
            if ref.parent_id == suite_id:
                return ref.id

        try:
            result = self._client.create_test_case(
                self._connection.user, suite_id, name, self._ids.project_id, description
            )
        except TestLinkApiError as exc:
            logger.error("Failed to create test case for %s. Reason: %s", name, exc)
            return 0
        if not result.status:
            logger.error("Failed to create test case for %s. Reason: %s", name, result.message)
            return 0

        info = result.additional_info
        test_case_id = int(info.get("id") or result.id or 0)
        external_id = f"{self._ids.project_prefix}-{info.get('external_id', '')}"
        version = int(info.get("version_number") or 1)
        logger.info("Created test case #%s '%s' (%s)", test_case_id, name, external_id)

        feature_id = self._client.add_test_case_to_test_plan(
            self._ids.project_id,
            self._ids.test_plan_id,
            external_id,
            version,
            self._ids.platform_id,
        )
        if not feature_id:
            logger.error("Failed to assign test case %s to test plan", name)
            return 0
        return test_case_id

    # ── Results ─────────────────────────────────────────────────────────

    def report(self, test_case_id: int, outcome: Outcome, notes: str = "") -> GeneralResult:
        """Record *outcome* for *test_case_id* against the active plan and build."""
        if not self.connection_valid:
            return GeneralResult(status=False, message="Invalid Connection")
        if test_case_id <= 0:
            return GeneralResult(status=False, message="No test case id")
        return self._client.report_test_case_result(
            test_case_id,
            self._ids.test_plan_id,
            outcome.value,
            self._ids.build_id,
            notes=notes,
            platform_name=self._selection.platform,
        )
