"""
config.py – Centralised configuration loaded from environment variables.
"""

import os
import sys
from dotenv import load_dotenv

from models import ConnectionParameters, FixtureConfig

load_dotenv()

TRUE_VALUES = {"1", "true", "yes", "on"}


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in TRUE_VALUES


class Settings:
    """Validated, read-only application settings."""

    # ── TestLink server ─────────────────────────────────────
    TESTLINK_URL: str = os.getenv("TESTLINK_URL", "")
    TESTLINK_DEV_KEY: str = os.getenv("TESTLINK_DEV_KEY", "")
    TESTLINK_USER: str = os.getenv("TESTLINK_USER", "")

    # ── Hierarchy ───────────────────────────────────────────
    TESTLINK_PROJECT: str = os.getenv("TESTLINK_PROJECT", "")
    TESTLINK_TEST_PLAN: str = os.getenv("TESTLINK_TEST_PLAN", "")
    TESTLINK_PLATFORM: str = os.getenv("TESTLINK_PLATFORM", "")
    TESTLINK_BUILD: str = os.getenv("TESTLINK_BUILD", "")
    # empty → the fixture's qualified name is used as the suite path
    TESTLINK_TEST_SUITE: str = os.getenv("TESTLINK_TEST_SUITE", "")

    # ── Behaviour ───────────────────────────────────────────
    TESTLINK_EXPORT_ENABLED: bool = _flag("TESTLINK_EXPORT_ENABLED", "true")
    TESTLINK_CREATE_SUITES: bool = _flag("TESTLINK_CREATE_SUITES", "true")

    @classmethod
    def connection(cls) -> ConnectionParameters:
        return ConnectionParameters(
            url=cls.TESTLINK_URL,
            dev_key=cls.TESTLINK_DEV_KEY,
            user=cls.TESTLINK_USER,
        )

    @classmethod
    def fixture_config(cls, **overrides) -> FixtureConfig:
        """Return the default fixture configuration, with optional overrides.

        Overrides whose value is ``None`` are ignored so CLI flags that were
        not given fall back to the environment.
        """
        values = {
            "connection": cls.connection(),
            "project": cls.TESTLINK_PROJECT,
            "test_plan": cls.TESTLINK_TEST_PLAN,
            "platform": cls.TESTLINK_PLATFORM,
            "build": cls.TESTLINK_BUILD,
            "test_suite": cls.TESTLINK_TEST_SUITE or None,
            "export_enabled": cls.TESTLINK_EXPORT_ENABLED,
            "create_suites": cls.TESTLINK_CREATE_SUITES,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return FixtureConfig(**values)

    @classmethod
    def validate(cls) -> None:
        """Halt early if required values are missing."""
        missing: list[str] = []
        if not cls.TESTLINK_URL:
            missing.append("TESTLINK_URL")
        if not cls.TESTLINK_DEV_KEY:
            missing.append("TESTLINK_DEV_KEY")
        if not cls.TESTLINK_USER:
            missing.append("TESTLINK_USER")
        if not cls.TESTLINK_PROJECT:
            missing.append("TESTLINK_PROJECT")
        if not cls.TESTLINK_TEST_PLAN:
            missing.append("TESTLINK_TEST_PLAN")

        if missing:
            sys.exit(
                f"[ERROR] Missing required environment variables: {', '.join(missing)}\n"
                "  → Copy .env.example to .env and fill in all values."
            )
