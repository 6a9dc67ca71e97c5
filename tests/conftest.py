"""Pytest configuration and fixtures."""

import os
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import pytest

from adkit.config.schemas import ADKConfig
from adkit.errors import CacheProviderError
from adkit.models.providers.base import CacheProviderClient


@pytest.fixture
def test_config() -> ADKConfig:
    """Create a test configuration."""
    return ADKConfig(quiet=True)


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
app_name: test-server
context_cache:
  enabled: true
  ttl_seconds: 600

log_level: DEBUG
""")
    return config_file


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Restore os.environ after a test that loads env files."""
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def clean_modules() -> Generator[None, None, None]:
    """Drop modules imported by agent files during a test."""
    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        sys.modules.pop(name, None)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty agent project root."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "pyproject.toml").write_text('[project]\nname = "agents"\n')
    return root


@pytest.fixture
def write_agent() -> Callable[..., Path]:
    """Write an agent.py file below a directory."""

    def _write(directory: Path, source: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        agent_file = directory / "agent.py"
        agent_file.write_text(textwrap.dedent(source))
        return agent_file

    return _write


ECHO_AGENT_SOURCE = '''
from adkit import BaseAgent


class EchoAgent(BaseAgent):
    async def _run_async_impl(self, ctx):
        text = ctx.user_content.text if ctx.user_content else ""
        yield self.reply(ctx, f"  {self.name} heard: {text}  ")


agent = EchoAgent(name="{name}")
'''


@pytest.fixture
def echo_agent_source() -> Callable[[str], str]:
    """Source of an agent file exporting an EchoAgent with the given name."""

    def _source(name: str) -> str:
        return ECHO_AGENT_SOURCE.replace("{name}", name)

    return _source


class FakeCacheProvider(CacheProviderClient):
    """In-memory cache provider recording calls."""

    min_cacheable_tokens = 1024

    def __init__(self, token_count: int = 5000, fail: Optional[str] = None) -> None:
        self.token_count = token_count
        self.fail = fail
        self.created: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.count_calls = 0

    @property
    def provider(self) -> str:
        return "fake"

    async def count_tokens(self, model, contents, system_instruction=None, tools=None) -> int:
        self.count_calls += 1
        if self.fail == "count":
            raise CacheProviderError("count failed")
        return self.token_count

    async def create_cache(
        self,
        model,
        contents,
        ttl,
        display_name,
        system_instruction=None,
        tools=None,
        tool_config=None,
    ) -> str:
        if self.fail == "create":
            raise CacheProviderError("create failed")
        name = f"cachedContents/cache-{len(self.created) + 1}"
        self.created.append(
            {"name": name, "contents": list(contents), "ttl": ttl, "display_name": display_name}
        )
        return name

    async def delete_cache(self, name: str) -> None:
        self.deleted.append(name)
        if self.fail == "delete":
            raise CacheProviderError("delete failed")


@pytest.fixture
def fake_provider() -> FakeCacheProvider:
    """Cache provider that always succeeds."""
    return FakeCacheProvider()


@pytest.fixture
def make_provider() -> Callable[..., FakeCacheProvider]:
    """Factory for cache providers with a given token count or failure mode."""
    return FakeCacheProvider
