"""
testlink_client.py – All TestLink XML-RPC interactions.

Uses the official `TestLink-API-Python-client` SDK (``testlink``) for every
``tl.*`` call.  The SDK talks through a `requests` session plugged in as its
XML-RPC transport, and its responses are converted into the plain
data-classes from :mod:`models`.
"""

from __future__ import annotations

import logging
import xmlrpc.client
from typing import Any
from urllib.parse import urlsplit
from xml.parsers.expat import ExpatError

import requests
from testlink import TestlinkAPIGeneric
from testlink.testlinkerrors import (
    TestLinkError as TLError,
    TLAPIError,
    TLConnectionError,
    TLResponseError,
)

from models import (
    Build,
    ConnectionParameters,
    GeneralResult,
    Platform,
    TestCaseRef,
    TestPlan,
    TestProject,
    TestSuite,
)

logger = logging.getLogger("testlink-exporter")

# TestLink error codes that only mean "nothing matched"
PROJECT_NOT_FOUND = 7011
NO_FIRST_LEVEL_SUITES = 7008
NO_PLATFORMS = 3041
TEST_CASE_NAME_NOT_FOUND = 5030

EXECUTION_TYPE_AUTOMATED = 2
IMPORTANCE_MEDIUM = 2


class TestLinkError(Exception):
    """Base class for every failure raised by :class:`TestLinkClient`."""

    __test__ = False


class TestLinkConnectionError(TestLinkError):
    """Transport or protocol level failure talking to the server."""


class TestLinkApiError(TestLinkError):
    """The server answered with a TestLink error struct."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"TestLink error {code}: {message}")
        self.code = code
        self.message = message


# ── Transport ───────────────────────────────────────────────────────────

class SessionTransport(xmlrpc.client.Transport):
    """XML-RPC transport that posts through a `requests` session.

    ``requests`` errors are ``IOError`` subclasses and malformed bodies are
    re-raised as ``ProtocolError``, so the SDK reports both as connection
    errors.
    """

    def __init__(self, scheme: str = "http", session: requests.Session | None = None) -> None:
        super().__init__()
        self._scheme = scheme
        self.session = session or requests.Session()
        self._xml_header = {"Content-Type": "text/xml; charset=utf-8"}

    def request(self, host, handler, request_body, verbose=False):
        url = f"{self._scheme}://{host}{handler}"
        resp = self.session.post(url, data=request_body, headers=self._xml_header)
        resp.raise_for_status()
        try:
            params, _ = xmlrpc.client.loads(resp.content)
        except (ExpatError, xmlrpc.client.ResponseError) as exc:
            raise xmlrpc.client.ProtocolError(
                url, resp.status_code, f"malformed response: {exc}", {}
            ) from exc
        return params


# ── Response helpers ────────────────────────────────────────────────────

def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() not in ("", "0", "false", "False")
    return bool(value)


def _as_list(result: Any) -> list[dict]:
    """Normalise the assorted shapes TestLink uses for collections."""
    if isinstance(result, list):
        return [r for r in result if isinstance(r, dict)]
    if isinstance(result, dict):
        # a single entity comes back bare, several come back keyed by id
        if "id" in result:
            return [result]
        return [r for r in result.values() if isinstance(r, dict)]
    return []


def _first(result: Any) -> dict:
    if isinstance(result, list):
        return result[0] if result and isinstance(result[0], dict) else {}
    return result if isinstance(result, dict) else {}


def _general_result(result: Any) -> GeneralResult:
    data = _first(result)
    return GeneralResult(
        status=_as_bool(data.get("status", False)),
        message=str(data.get("message", "") or ""),
        id=_as_int(data.get("id")),
        additional_info=data.get("additionalInfo") or {},
    )


# ── Main client ─────────────────────────────────────────────────────────

class TestLinkClient:
    """Wraps every TestLink API call needed by the exporter."""

    __test__ = False

    def __init__(self, connection: ConnectionParameters) -> None:
        self._url = connection.url
        scheme = urlsplit(connection.url).scheme or "http"
        self._transport = SessionTransport(scheme)
        self._api = TestlinkAPIGeneric(
            connection.url, connection.dev_key, transport=self._transport
        )

    def _call(self, method: str, *args: Any, **params: Any) -> Any:
        """Invoke ``tl.<method>`` through the SDK and return its raw response."""
        logger.debug("→ tl.%s %s %s", method, args, params)
        try:
            return getattr(self._api, method)(*args, **params)
        except TLResponseError as exc:
            if exc.code is None:
                # the SDK refuses empty responses, TestLink sends them for "none"
                return []
            raise TestLinkApiError(_as_int(exc.code), str(exc.message)) from exc
        except (TLConnectionError, TLAPIError) as exc:
            raise TestLinkConnectionError(f"tl.{method} failed: {exc}") from exc
        except TLError as exc:
            raise TestLinkError(f"tl.{method} failed: {exc}") from exc

    # ── Liveness ────────────────────────────────────────────────────────

    def check_dev_key(self) -> bool:
        """Round-trip that proves both the endpoint and the key are usable."""
        return _as_bool(self._call("checkDevKey"))

    # ── Projects / plans / platforms / builds ───────────────────────────

    def get_project_by_name(self, name: str) -> TestProject | None:
        try:
            data = _first(self._call("getTestProjectByName", name))
        except TestLinkApiError as exc:
            if exc.code == PROJECT_NOT_FOUND:
                return None
            raise
        if not data:
            return None
        return TestProject(
            id=_as_int(data.get("id")),
            name=data.get("name", name),
            prefix=data.get("prefix", ""),
        )

    def get_project_test_plans(self, project_id: int) -> list[TestPlan]:
        result = self._call("getProjectTestPlans", project_id)
        return [TestPlan(id=_as_int(p.get("id")), name=p.get("name", "")) for p in _as_list(result)]

    def get_test_plan_platforms(self, test_plan_id: int) -> list[Platform]:
        try:
            result = self._call("getTestPlanPlatforms", test_plan_id)
        except TestLinkApiError as exc:
            if exc.code == NO_PLATFORMS:
                return []
            raise
        return [Platform(id=_as_int(p.get("id")), name=p.get("name", "")) for p in _as_list(result)]

    def get_builds_for_test_plan(self, test_plan_id: int) -> list[Build]:
        result = self._call("getBuildsForTestPlan", test_plan_id)
        return [
            Build(
                id=_as_int(b.get("id")),
                name=b.get("name", ""),
                active=_as_bool(b.get("active", True)),
                is_open=_as_bool(b.get("is_open", True)),
            )
            for b in _as_list(result)
        ]

    # ── Test suites ─────────────────────────────────────────────────────

    def get_first_level_test_suites(self, project_id: int) -> list[TestSuite]:
        try:
            result = self._call("getFirstLevelTestSuitesForTestProject", project_id)
        except TestLinkApiError as exc:
            if exc.code == NO_FIRST_LEVEL_SUITES:
                return []
            raise
        return [
            TestSuite(id=_as_int(s.get("id")), name=s.get("name", ""), parent_id=project_id)
            for s in _as_list(result)
        ]

    def get_test_suites_for_test_suite(self, suite_id: int) -> list[TestSuite]:
        result = self._call("getTestSuitesForTestSuite", suite_id)
        return [
            TestSuite(id=_as_int(s.get("id")), name=s.get("name", ""), parent_id=suite_id)
            for s in _as_list(result)
        ]

    def create_test_suite(
        self, project_id: int, name: str, details: str = "", parent_id: int = 0
    ) -> GeneralResult:
        """Create a suite under *parent_id*, or at project level when it is 0."""
        params: dict[str, Any] = {}
        if parent_id:
            params["parentid"] = parent_id
        try:
            result = self._call("createTestSuite", project_id, name, details, **params)
        except TestLinkApiError as exc:
            return GeneralResult(status=False, message=exc.message)
        return _general_result(result)

    # ── Test cases ──────────────────────────────────────────────────────

    def get_test_case_ids_by_name(self, name: str) -> list[TestCaseRef]:
        try:
            result = self._call("getTestCaseIDByName", name)
        except TestLinkApiError as exc:
            if exc.code == TEST_CASE_NAME_NOT_FOUND:
                return []
            raise
        return [
            TestCaseRef(
                id=_as_int(tc.get("id")),
                name=tc.get("name", name),
                parent_id=_as_int(tc.get("parent_id")),
                external_id=str(tc.get("tc_external_id", "")),
            )
            for tc in _as_list(result)
        ]

    def create_test_case(
        self,
        author: str,
        suite_id: int,
        name: str,
        project_id: int,
        summary: str = "",
        steps: list[dict] | None = None,
        importance: int = IMPORTANCE_MEDIUM,
        execution_type: int = EXECUTION_TYPE_AUTOMATED,
    ) -> GeneralResult:
        """Create a test case; a same-named case in the suite blocks creation."""
        try:
            result = self._call(
                "createTestCase",
                name,
                suite_id,
                project_id,
                author,
                summary,
                steps or [],
                checkduplicatedname=1,
                actiononduplicatedname="block",
                importance=importance,
                executiontype=execution_type,
            )
        except TestLinkApiError as exc:
            return GeneralResult(status=False, message=exc.message)
        return _general_result(result)

    def add_test_case_to_test_plan(
        self,
        project_id: int,
        test_plan_id: int,
        external_id: str,
        version: int,
        platform_id: int = 0,
    ) -> int:
        """Link a test case version into a plan; returns the feature id or 0."""
        params: dict[str, Any] = {}
        if platform_id:
            params["platformid"] = platform_id
        try:
            result = self._call(
                "addTestCaseToTestPlan", project_id, test_plan_id, external_id, version, **params
            )
        except TestLinkApiError as exc:
            logger.warning("Could not add %s to test plan %s: %s", external_id, test_plan_id, exc)
            return 0
        return _as_int(_first(result).get("feature_id"))

    # ── Results ─────────────────────────────────────────────────────────

    def report_test_case_result(
        self,
        test_case_id: int,
        test_plan_id: int,
        status: str,
        build_id: int,
        notes: str = "",
        platform_name: str = "",
    ) -> GeneralResult:
        params: dict[str, Any] = {
            "testcaseid": test_case_id,
            "buildid": build_id,
            "notes": notes,
            "guess": False,
        }
        if platform_name:
            params["platformname"] = platform_name
        try:
            result = self._call("reportTCResult", test_plan_id, status, **params)
        except TestLinkApiError as exc:
            return GeneralResult(status=False, message=exc.message)
        return _general_result(result)
