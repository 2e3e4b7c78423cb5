"""
junit_reader.py – Turns a JUnit XML report into a result tree.

Mapping:
  <testsuites> / <testsuite>   → non-leaf TestResult
  <testcase>                   → leaf TestResult, full name ``classname.name``
  <failure> / <error>          → FAILURE / ERROR, message from the element
  <skipped>                    → SKIPPED
  <system-out> / <system-err>  → captured output
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path

from models import ResultState, TestResult

logger = logging.getLogger("testlink-exporter")

_PARAMS = re.compile(r"^(?P<method>[^\[]+)\[.*\]$")


def _text(el: ET.Element | None) -> str:
    return (el.text or "").strip() if el is not None else ""


def _message(el: ET.Element) -> str:
    """Prefer the ``message`` attribute, fall back to the element body."""
    message = el.get("message", "").strip()
    body = _text(el)
    if message and body and message not in body:
        return f"{message}\n{body}"
    return message or body


def _testcase(el: ET.Element) -> TestResult:
    name = el.get("name", "")
    classname = el.get("classname", "")
    match = _PARAMS.match(name)
    method_name = match.group("method") if match else name

    state = ResultState.SUCCESS
    message = ""
    for tag, candidate in (
        ("failure", ResultState.FAILURE),
        ("error", ResultState.ERROR),
        ("skipped", ResultState.SKIPPED),
    ):
        child = el.find(tag)
        if child is not None:
            state = candidate
            message = _message(child)
            break

    output_parts = [_text(el.find("system-out")), _text(el.find("system-err"))]
    output = "\n".join(p for p in output_parts if p)

    return TestResult(
        name=name,
        full_name=f"{classname}.{name}" if classname else name,
        method_name=method_name,
        description=el.get("description", ""),
        state=state,
        message=message,
        output=output or None,
    )


def _suite(el: ET.Element, fallback_name: str) -> TestResult:
    node = TestResult(name=el.get("name", fallback_name))
    for child in el:
        if child.tag in ("testsuite", "testsuites"):
            sub = _suite(child, node.name)
            # an empty suite would otherwise look like a single test
            if sub.has_results:
                node.children.append(sub)
        elif child.tag == "testcase":
            node.children.append(_testcase(child))
    return node


def parse_junit_xml(xml_str: str | bytes, name: str = "junit") -> TestResult:
    """Parse JUnit XML text into a :class:`TestResult` tree rooted at *name*."""
    root = ET.fromstring(xml_str)
    tree = _suite(root, name)
    tree.name = name
    logger.debug("Parsed JUnit report '%s'", name)
    return tree


def read_junit_xml(path: str | Path) -> TestResult:
    path = Path(path)
    return parse_junit_xml(path.read_bytes(), name=path.name)


def iter_leaves(result: TestResult):
    """Yield every leaf (single test case) of *result* in order."""
    if not result.has_results:
        yield result
        return
    for child in result.children:
        yield from iter_leaves(child)
