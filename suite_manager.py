"""
suite_manager.py – Resolves dotted suite paths to TestLink test-suite ids.

A suite path such as ``"Acceptance.Checkout.Payments"`` names a chain of
nested suites under the project:

  Project
   └─ Acceptance          (first-level suite)
       └─ Checkout
           └─ Payments

Missing segments are created on demand.  Every prefix that is found or
created is cached, so sibling paths reuse their parents and a repeated path
costs no round trips.
"""

from __future__ import annotations

import logging

from testlink_client import TestLinkClient

logger = logging.getLogger("testlink-exporter")


class SuiteManager:
    """Walks, creates and caches nested test suites for one client."""

    def __init__(self, client: TestLinkClient) -> None:
        self._client = client
        self._suite_cache: dict[tuple[int, str], int] = {}

    @property
    def cache(self) -> dict[tuple[int, str], int]:
        return self._suite_cache

    def _cached_prefix(self, project_id: int, segments: list[str]) -> tuple[int, int]:
        """Return ``(depth, suite_id)`` of the longest cached prefix."""
        for depth in range(len(segments), 0, -1):
            suite_id = self._suite_cache.get((project_id, ".".join(segments[:depth])))
            if suite_id:
                return depth, suite_id
        return 0, 0

    def resolve(self, project_id: int, path: str, create_if_missing: bool = True) -> int:
        """Return the id of the suite at *path*, or 0 if it cannot be had.

        With *create_if_missing* every absent segment is created as a child
        of the previous one (first-level segments as children of the
        project).  Without it the walk stops at the first absent segment.
        """
        segments = [s.strip() for s in path.split(".")]
        if not path or not all(segments):
            logger.error("Invalid test suite path '%s'", path)
            return 0

        depth, parent_id = self._cached_prefix(project_id, segments)
        if depth == len(segments):
            return parent_id

        for i in range(depth, len(segments)):
            name = segments[i]
            if parent_id:
                siblings = self._client.get_test_suites_for_test_suite(parent_id)
            else:
                siblings = self._client.get_first_level_test_suites(project_id)

            suite_id = next((s.id for s in siblings if s.name == name), 0)
            if not suite_id:
                if not create_if_missing:
                    logger.info("Test suite '%s' (%s) does not exist", name, path)
                    return 0
                result = self._client.create_test_suite(project_id, name, "", parent_id)
                if not result.status or not result.id:
                    logger.error(
                        "Error trying to create new test suite %s (%s): %s",
                        name, path, result.message,
                    )
                    return 0
                suite_id = result.id
                logger.info("Created new test suite %s (%s) id=%s", name, path, suite_id)

            self._suite_cache[(project_id, ".".join(segments[: i + 1]))] = suite_id
            parent_id = suite_id

        return parent_id
