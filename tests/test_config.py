"""
Unit tests for settings and InterceptorConfiguration (src/bearer_interceptor/config.py).

Settings are built with _env_file=None so a developer's local .env never
leaks into the assertions; values come from monkeypatched BEARER_* variables.
"""

import json
import logging

import pytest

from bearer_interceptor.config import InterceptorConfiguration, Settings
from bearer_interceptor.interceptor import ProtectedResourceAuth
from bearer_interceptor.log import LOGGER_NAME, JSONLogFormatter
from bearer_interceptor.models import AuthenticationResult, InteractionType
from bearer_interceptor.resources import match_scopes_to_endpoint


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "BEARER_INTERACTION_TYPE",
        "BEARER_BASE_URL",
        "BEARER_PROTECTED_RESOURCE_MAP",
        "BEARER_PROTECTED_RESOURCES_FILE",
        "BEARER_AUTH_REQUEST",
        "BEARER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.interaction_type is InteractionType.POPUP
        assert settings.base_url is None
        assert settings.auth_request == {}
        assert not settings.resource_table()

    def test_reads_environment(self, clean_env):
        clean_env.setenv("BEARER_INTERACTION_TYPE", "redirect")
        clean_env.setenv("BEARER_BASE_URL", "http://localhost:4200")
        clean_env.setenv("BEARER_AUTH_REQUEST", json.dumps({"authority": "https://login/common"}))

        settings = Settings(_env_file=None)

        assert settings.interaction_type is InteractionType.REDIRECT
        assert settings.base_url == "http://localhost:4200"
        assert settings.auth_request == {"authority": "https://login/common"}

    def test_resource_map_from_environment_keeps_order(self, clean_env):
        clean_env.setenv(
            "BEARER_PROTECTED_RESOURCE_MAP",
            json.dumps(
                {
                    "http://h/sub": ["sub.scope"],
                    "http://h/*": [{"POST": ["write"]}, "all"],
                    "http://h/open": None,
                }
            ),
        )

        table = Settings(_env_file=None).resource_table()

        assert table.patterns() == ["http://h/sub", "http://h/*", "http://h/open"]
        assert match_scopes_to_endpoint(table, ["http://h/sub"], "GET") == ["sub.scope"]
        assert match_scopes_to_endpoint(table, ["http://h/x"], "POST") == ["write", "all"]
        assert match_scopes_to_endpoint(table, ["http://h/open"], "GET") is None

    def test_resource_file_used_when_map_is_empty(self, clean_env, tmp_path):
        path = tmp_path / "resources.json"
        path.write_text(json.dumps({"https://api.com/*": ["api.read"]}), encoding="utf-8")
        clean_env.setenv("BEARER_PROTECTED_RESOURCES_FILE", str(path))

        table = Settings(_env_file=None).resource_table()

        assert table.patterns() == ["https://api.com/*"]

    def test_inline_map_takes_precedence_over_file(self, clean_env, tmp_path):
        path = tmp_path / "resources.json"
        path.write_text(json.dumps({"https://file.com": ["f"]}), encoding="utf-8")
        clean_env.setenv("BEARER_PROTECTED_RESOURCES_FILE", str(path))
        clean_env.setenv("BEARER_PROTECTED_RESOURCE_MAP", json.dumps({"https://inline.com": ["i"]}))

        assert Settings(_env_file=None).resource_table().patterns() == ["https://inline.com"]


class TestInterceptorConfiguration:
    def test_from_settings(self, clean_env):
        clean_env.setenv("BEARER_INTERACTION_TYPE", "redirect")
        clean_env.setenv("BEARER_BASE_URL", "http://localhost:4200")
        clean_env.setenv("BEARER_PROTECTED_RESOURCE_MAP", json.dumps({"https://api.com": ["s"]}))
        clean_env.setenv("BEARER_AUTH_REQUEST", json.dumps({"authority": "https://login/t"}))

        config = InterceptorConfiguration.from_settings(Settings(_env_file=None))

        assert config.interaction_type is InteractionType.REDIRECT
        assert config.base_url == "http://localhost:4200"
        assert config.auth_request == {"authority": "https://login/t"}
        assert config.protected_resources.patterns() == ["https://api.com"]

    def test_log_level_from_environment_reaches_logger(self, clean_env):
        clean_env.setenv("BEARER_LOG_LEVEL", "warning")

        InterceptorConfiguration.from_settings(Settings(_env_file=None))

        logger = logging.getLogger(LOGGER_NAME)
        assert logger.level == logging.WARNING
        assert [type(h.formatter) for h in logger.handlers] == [JSONLogFormatter]

    def test_empty_auth_request_becomes_none(self, clean_env):
        config = InterceptorConfiguration.from_settings(Settings(_env_file=None))

        assert config.auth_request is None

    async def test_create_auth_wires_provider(self, make_provider, protected_resources, sample_account):
        provider = make_provider(
            silent=AuthenticationResult("access-token"), active_account=sample_account
        )
        config = InterceptorConfiguration(
            protected_resources,
            interaction_type="redirect",
            auth_request={"authority": "https://login/common"},
            base_url="http://localhost:4200",
        )

        auth = config.create_auth(provider)

        assert isinstance(auth, ProtectedResourceAuth)
        assert auth.acquirer.interaction_type is InteractionType.REDIRECT
        outcome = await auth.acquirer.acquire(["s"])
        assert outcome.access_token == "access-token"
        assert provider.silent_requests[0].authority == "https://login/common"
