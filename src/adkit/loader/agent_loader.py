"""Turns an agent file path into a resolved agent instance."""

from pathlib import Path
from types import ModuleType
from typing import Optional, Union

from adkit.config.schemas import ADKConfig
from adkit.errors import CompilationError, MissingEnvironmentVariableError, NoAgentExportError
from adkit.loader.classifier import ErrorClassifier
from adkit.loader.compiler import CacheRegistry, ModuleCompiler
from adkit.loader.env import EnvLoader, EnvLoadResult
from adkit.loader.project import find_project_root
from adkit.loader.resolver import ExportResolver, ResolvedAgent
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)


class AgentLoader:
    """Loads agent files: environment, compilation, execution and export resolution.

    Args:
        config: Application configuration
        registry: Cache registry shared with whoever performs shutdown cleanup
    """

    def __init__(
        self,
        config: Optional[ADKConfig] = None,
        registry: Optional[CacheRegistry] = None,
    ) -> None:
        self.config = config or ADKConfig()
        self.registry = registry or CacheRegistry(self.config.cache_dir_name)
        self.compiler = ModuleCompiler(
            registry=self.registry,
            cache_dir_name=self.config.cache_dir_name,
            external_scopes=self.config.external_scopes,
        )
        self.env_loader = EnvLoader(self.config.env_files, quiet=self.config.quiet)
        self.classifier = ErrorClassifier(self.config.optional_env_patterns)
        self.resolver = ExportResolver(self.config.external_scopes)

    def load_environment_variables(
        self,
        agent_file_path: Union[str, Path],
        project_root: Optional[Path] = None,
    ) -> EnvLoadResult:
        """Load the ``.env*`` files of the project owning an agent file."""
        root = project_root or find_project_root(Path(agent_file_path).resolve().parent)
        return self.env_loader.load(root)

    def import_agent_file(
        self,
        file_path: Union[str, Path],
        project_root: Optional[Path] = None,
    ) -> ModuleType:
        """Compile and execute an agent file, returning its module.

        When only optional environment variables are missing, the module is
        returned as far as it executed.

        Raises:
            CompilationError: If the file fails to compile or imports a missing module
            MissingEnvironmentVariableError: If required variables are missing
        """
        source = Path(file_path).resolve()
        root = project_root or find_project_root(source.parent)

        compiled = self.compiler.compile(source, root)
        module = self.compiler.create_module(compiled, source)
        try:
            return self.compiler.execute(module, root)
        except CompilationError:
            raise
        except Exception as e:
            classification = self.classifier.classify(e)
            if not classification.is_missing_env:
                raise

            if classification.only_optional_missing:
                logger.warning(
                    "Missing optional environment variables",
                    variables=classification.optional_missing,
                    agent_file=str(source),
                )
                return module

            logger.error(
                self.classifier.build_diagnostic(
                    classification.required_missing,
                    root,
                    self.env_loader.find_env_files(root),
                )
            )
            raise MissingEnvironmentVariableError(
                classification.required_missing, project_root=str(root)
            ) from e

    async def resolve_agent_export(self, module: ModuleType) -> ResolvedAgent:
        """Find the agent among a module's exports."""
        return await self.resolver.resolve(module)

    async def load_agent(
        self,
        agent_file: Union[str, Path],
        project_root: Optional[Path] = None,
    ) -> ResolvedAgent:
        """Full pipeline for one agent file."""
        source = Path(agent_file).resolve()
        root = project_root or find_project_root(source.parent)

        self.load_environment_variables(source, root)
        module = self.import_agent_file(source, root)
        resolved = await self.resolve_agent_export(module)

        if not resolved.agent.name:
            raise NoAgentExportError(
                f"Invalid agent export in {source}. Expected an agent with a name."
            )

        logger.debug("Agent loaded", agent=resolved.name, file=str(source))
        return resolved

    def cleanup(self) -> None:
        """Remove every compiled artifact written by this loader."""
        self.registry.cleanup()
