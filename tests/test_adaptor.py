"""Tests for connection handling and hierarchy resolution in TestLinkAdaptor."""

from dataclasses import replace

import pytest

from adaptor import NO_PLATFORM, TestLinkAdaptor
from models import Build, ConnectionParameters, HierarchySelection
from testlink_client import TestLinkConnectionError
from tests.fakes import FakeTestLinkClient

LOOKUPS = (
    "get_project_by_name",
    "get_project_test_plans",
    "get_test_plan_platforms",
    "get_builds_for_test_plan",
)

class TestConnection:
    def test_new_connection_checks_liveness(self, adaptor, connection, clients):
        assert adaptor.set_connection(connection) is True
        assert adaptor.basic_connection_valid
        assert not adaptor.connection_valid  # hierarchy not resolved yet
        assert clients[-1].count("check_dev_key") == 1

    def test_same_parameters_make_no_call(self, adaptor, connection, clients):
        adaptor.set_connection(connection)
        assert adaptor.set_connection(replace(connection)) is True
        assert len(clients) == 1
        assert clients[0].count("check_dev_key") == 1

    def test_unreachable_server_records_last_exception(self, connection):
        def factory(params):
            client = FakeTestLinkClient(params)
            client.unreachable = True
            return client

        adaptor = TestLinkAdaptor(client_factory=factory)
        assert adaptor.set_connection(connection) is False
        assert isinstance(adaptor.last_exception, TestLinkConnectionError)
        assert not adaptor.project_data_valid
        assert not adaptor.connection_valid

    def test_rejected_dev_key_is_invalid(self, connection):
        def factory(params):
            client = FakeTestLinkClient(params)
            client.alive = False
            return client

        adaptor = TestLinkAdaptor(client_factory=factory)
        assert adaptor.set_connection(connection) is False
        assert adaptor.last_exception is None

    def test_missing_parameters(self, adaptor):
        assert adaptor.set_connection(None) is False
        assert not adaptor.basic_connection_valid

    def test_failed_connection_invalidates_resolved_hierarchy(self, connected, selection):
        adaptor, client = connected
        assert adaptor.set_hierarchy(selection)
        assert adaptor.connection_valid

        def broken(params):
            c = FakeTestLinkClient(params)
            c.unreachable = True
            return c

        adaptor._client_factory = broken
        adaptor.set_connection(ConnectionParameters(url="http://elsewhere", dev_key="x", user="ci"))
        assert not adaptor.project_data_valid
        assert not adaptor.connection_valid

    def test_credential_change_invalidates_every_cache(self, adaptor, connection, clients, selection):
        adaptor.set_connection(connection)
        sel = replace(selection, platform="Linux", build="1.1", suite_path="Root")
        assert adaptor.set_hierarchy(sel)
        first = clients[-1]

        adaptor.set_connection(replace(connection, dev_key="rotated"))
        second = clients[-1]
        assert second is not first
        assert not adaptor.connection_valid

        assert adaptor.set_hierarchy(sel)
        for method in LOOKUPS:
            assert second.count(method) == 1
        assert second.count("get_first_level_test_suites") == 1

    def test_url_change_creates_new_client(self, adaptor, connection, clients):
        adaptor.set_connection(connection)
        adaptor.set_connection(replace(connection, url="http://other/xmlrpc.php"))
        assert len(clients) == 2
        assert clients[1].connection.url == "http://other/xmlrpc.php"

    def test_same_parameters_recheck_after_connection_lost(self, connected, connection, selection, clients):
        adaptor, client = connected
        assert adaptor.set_hierarchy(selection)
        client.unreachable = True
        assert not adaptor.set_hierarchy(replace(selection, test_plan="Release2"))
        assert not adaptor.basic_connection_valid

        client.unreachable = False
        assert adaptor.set_connection(replace(connection)) is True
        assert len(clients) == 1
        assert client.count("check_dev_key") == 2
        assert adaptor.last_exception is None

        calls = len(client.calls)
        assert adaptor.set_hierarchy(selection)
        assert len(client.calls) == calls  # caches survive the re-check

    def test_same_parameters_still_down_stay_invalid(self, connected, connection, selection):
        adaptor, client = connected
        client.unreachable = True
        adaptor.set_hierarchy(selection)
        assert adaptor.set_connection(replace(connection)) is False
        assert isinstance(adaptor.last_exception, TestLinkConnectionError)
        assert not adaptor.connection_valid

class TestHierarchy:
    def test_requires_connection(self, adaptor, selection):
        result = adaptor.set_hierarchy(selection)
        assert not result
        assert result.error
        assert not adaptor.project_data_valid

    def test_unseen_names_cost_one_lookup_each(self, connected, selection):
        adaptor, client = connected
        sel = replace(selection, platform="Linux", build="1.1")
        result = adaptor.set_hierarchy(sel)
        assert result
        assert result.ids.project_id == 1
        assert result.ids.project_prefix == "DEMO"
        assert result.ids.test_plan_id == 10
        assert result.ids.platform_id == 5
        assert result.ids.build_id == 101
        for method in LOOKUPS:
            assert client.count(method) == 1

    def test_repeated_names_cost_nothing(self, connected, selection):
        adaptor, client = connected
        sel = replace(selection, platform="Linux", build="1.1")
        adaptor.set_hierarchy(sel)
        calls = len(client.calls)
        assert adaptor.set_hierarchy(sel)
        assert len(client.calls) == calls

    def test_empty_platform_and_build(self, connected, selection):
        adaptor, client = connected
        result = adaptor.set_hierarchy(selection)
        assert result
        assert result.ids.platform_id == NO_PLATFORM
        assert result.ids.build_id == 102  # last build in the plan's list
        assert client.count("get_test_plan_platforms") == 0
        assert adaptor.connection_valid

    def test_build_change_keeps_other_ids_cached(self, connected, selection):
        adaptor, client = connected
        adaptor.set_hierarchy(replace(selection, platform="Linux", build="1.0"))
        result = adaptor.set_hierarchy(replace(selection, platform="Linux", build="1.2"))
        assert result.ids.build_id == 102
        assert client.count("get_project_by_name") == 1
        assert client.count("get_project_test_plans") == 1
        assert client.count("get_test_plan_platforms") == 1
        assert client.count("get_builds_for_test_plan") == 2

    def test_switching_between_known_plans_is_free(self, connected, selection):
        adaptor, client = connected
        adaptor.set_hierarchy(selection)
        adaptor.set_hierarchy(replace(selection, test_plan="Release2"))
        calls = len(client.calls)
        assert adaptor.set_hierarchy(selection).ids.test_plan_id == 10
        assert adaptor.set_hierarchy(replace(selection, test_plan="Release2")).ids.test_plan_id == 11
        assert len(client.calls) == calls

    def test_plan_cache_is_scoped_to_project(self, connected, selection):
        adaptor, _ = connected
        assert adaptor.set_hierarchy(selection).ids.test_plan_id == 10
        assert adaptor.set_hierarchy(replace(selection, project="Other")).ids.test_plan_id == 20

    @pytest.mark.parametrize(
        "change, stops_before",
        [
            ({"project": "Missing"}, "get_project_test_plans"),
            ({"test_plan": "Missing"}, "get_test_plan_platforms"),
            ({"platform": "Solaris"}, "get_builds_for_test_plan"),
        ],
    )
    def test_failure_stops_at_first_step(self, connected, selection, change, stops_before):
        adaptor, client = connected
        sel = replace(replace(selection, platform="Linux"), **change)
        result = adaptor.set_hierarchy(sel)
        assert not result
        assert not adaptor.connection_valid
        assert client.count(stops_before) == 0

    def test_failure_keeps_unrelated_cache(self, connected, selection):
        adaptor, client = connected
        adaptor.set_hierarchy(selection)
        assert not adaptor.set_hierarchy(replace(selection, test_plan="Missing"))
        assert adaptor.set_hierarchy(selection)
        assert client.count("get_project_by_name") == 1
        assert client.count("get_project_test_plans") == 2

    def test_unknown_build(self, connected, selection):
        adaptor, _ = connected
        result = adaptor.set_hierarchy(replace(selection, build="9.9"))
        assert not result
        assert "9.9" in result.error

    def test_plan_without_builds(self, connected, selection):
        adaptor, client = connected
        client.builds[10] = []
        assert not adaptor.set_hierarchy(selection)

    def test_closed_build_is_rejected(self, connected, selection):
        adaptor, client = connected
        client.builds[10] = [Build(id=100, name="1.0", is_open=False)]
        result = adaptor.set_hierarchy(replace(selection, build="1.0"))
        assert not result
        assert "not active/open" in result.error

    def test_suite_path_is_resolved_and_created(self, connected, selection):
        adaptor, client = connected
        result = adaptor.set_hierarchy(replace(selection, suite_path="Root.Child"))
        assert result
        assert result.ids.test_suite_id
        assert client.count("create_test_suite") == 1

    def test_suite_path_without_creation(self, client_factory, connection, selection):
        adaptor = TestLinkAdaptor(client_factory=client_factory, create_suites=False)
        adaptor.set_connection(connection)
        result = adaptor.set_hierarchy(replace(selection, suite_path="Nowhere"))
        assert not result
        assert "Nowhere" in result.error

    def test_connection_lost_during_resolution(self, connected, selection):
        adaptor, client = connected
        client.unreachable = True
        result = adaptor.set_hierarchy(selection)
        assert not result
        assert not adaptor.basic_connection_valid
        assert isinstance(adaptor.last_exception, TestLinkConnectionError)

    def test_selection_is_remembered(self, connected, selection):
        adaptor, _ = connected
        adaptor.set_hierarchy(selection)
        assert adaptor.selection == selection
        assert adaptor.ids.test_plan_id == 10

def test_hierarchy_selection_is_value_comparable():
    a = HierarchySelection(project="Demo", test_plan="R1", build="1")
    assert a == HierarchySelection(project="Demo", test_plan="R1", build="1")
    assert a != HierarchySelection(project="Demo", test_plan="R1", build="2")
