"""Tests for agent discovery."""

from pathlib import Path
from types import SimpleNamespace

from adkit.loader.scanner import AgentScanner


class TestAgentScanner:
    """Tests for AgentScanner."""

    def test_finds_nested_agents(self, project: Path, write_agent) -> None:
        """Should key agents by their path relative to the scan root."""
        write_agent(project / "agents" / "foo", 'agent = Agent(name="Foo Agent")\n')
        write_agent(project / "agents" / "team" / "bar", "agent = None\n")

        agents = AgentScanner(quiet=True).scan_agents(project / "agents")

        assert sorted(agents) == ["foo", "team/bar"]
        assert agents["foo"].display_name == "Foo Agent"
        assert agents["team/bar"].display_name == "bar"
        assert agents["foo"].agent_file == (project / "agents" / "foo" / "agent.py").resolve()
        assert agents["foo"].project_root == project.resolve()

    def test_skips_ignored_directories(self, project: Path, write_agent) -> None:
        """Should not descend into environment or cache directories."""
        write_agent(project / "agents" / "foo", "")
        write_agent(project / "agents" / ".venv" / "lib", "")
        write_agent(project / "agents" / "node_modules" / "pkg", "")
        write_agent(project / "agents" / "__pycache__", "")

        agents = AgentScanner(quiet=True).scan_agents(project / "agents")

        assert list(agents) == ["foo"]

    def test_agent_at_scan_root(self, project: Path, write_agent) -> None:
        """An agent file at the root should be named after the directory."""
        root = project / "solo"
        write_agent(root, "")

        agents = AgentScanner(quiet=True).scan_agents(root)

        assert list(agents) == ["solo"]

    def test_loaded_name_preferred(self, project: Path, write_agent) -> None:
        """Names of loaded agents should replace the file heuristic."""
        write_agent(project / "agents" / "foo", 'name = "Heuristic"\n')
        loaded = {"foo": SimpleNamespace(agent=SimpleNamespace(name="Loaded"))}

        agents = AgentScanner(quiet=True).scan_agents(project / "agents", loaded)

        assert agents["foo"].display_name == "Loaded"
        assert agents["foo"].instance is loaded["foo"].agent

    def test_single_quoted_name(self, project: Path, write_agent) -> None:
        """Should read names written with single quotes or a colon."""
        write_agent(project / "agents" / "foo", "config = {'name': 'Colon Agent'}\n")

        agents = AgentScanner(quiet=True).scan_agents(project / "agents")

        assert agents["foo"].display_name == "Colon Agent"
