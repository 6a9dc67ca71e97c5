"""Agent module compilation, caching and loading.

Agent files are compiled to bytecode in a project-local cache directory and
executed from there. Compiled artifacts are keyed by a hash of the source
path so repeated loads reuse them until the source or the project's
compiler options change.
"""

import hashlib
import importlib.abc
import importlib.machinery
import importlib.util
import itertools
import py_compile
import shutil
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Optional, Sequence

import yaml

from adkit.config.loader import PROJECT_CONFIG_NAME, load_yaml_config
from adkit.errors import CompilationError
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)

CACHE_DIR_NAME = ".adk-cache"
CACHE_KEY_LENGTH = 16
DEFAULT_EXTERNAL_SCOPES = ("adkit",)
PYC_HEADER_SIZE = 16

# Probed in order for an alias target
ALIAS_SUFFIXES = (".py", "/__init__.py", "")

# Never treated as project code, even when inside the project root
_ENVIRONMENT_DIRS = frozenset({".venv", "venv", "site-packages", "dist-packages"})

_module_counter = itertools.count()


def cache_key(source_path: Path) -> str:
    """Hash of the normalized absolute source path."""
    normalized = Path(source_path).resolve().as_posix()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:CACHE_KEY_LENGTH]


def remove_cache_dir(project_root: Path, cache_dir_name: str = CACHE_DIR_NAME) -> bool:
    """Delete a project's compiled module cache.

    Returns:
        True if a cache directory existed and was removed
    """
    cache_dir = project_root / cache_dir_name
    if not cache_dir.is_dir():
        return False
    shutil.rmtree(cache_dir)
    logger.info("Removed cache directory", path=str(cache_dir))
    return True


@dataclass
class CompilerOptions:
    """The ``compiler`` section of a project's ``.adk.yaml``.

    Example:
        compiler:
          base_url: src
          paths:
            "shared.*": ["lib/shared/*"]
            settings: ["config/settings"]
          external: [pydantic]
    """

    base_url: Path
    paths: dict[str, list[str]] = field(default_factory=dict)
    external: list[str] = field(default_factory=list)
    source: Optional[Path] = None

    @classmethod
    def load(cls, project_root: Path) -> "CompilerOptions":
        """Read options from the project root, falling back to defaults."""
        options_path = project_root / PROJECT_CONFIG_NAME
        if not options_path.is_file():
            return cls(base_url=project_root)

        try:
            section = load_yaml_config(options_path).get("compiler") or {}
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Failed to read compiler options", path=str(options_path), error=str(e))
            return cls(base_url=project_root, source=options_path)

        base_url = project_root / str(section.get("base_url", "."))
        paths = {
            str(pattern): [str(t) for t in (targets if isinstance(targets, list) else [targets])]
            for pattern, targets in (section.get("paths") or {}).items()
        }
        return cls(
            base_url=base_url.resolve(),
            paths=paths,
            external=[str(e) for e in section.get("external") or []],
            source=options_path,
        )


class CacheRegistry:
    """Tracks compiled artifacts and their project roots for later cleanup.

    Safe to share between threads; owned by whatever component runs
    shutdown cleanup.
    """

    def __init__(self, cache_dir_name: str = CACHE_DIR_NAME) -> None:
        self.cache_dir_name = cache_dir_name
        self._lock = threading.Lock()
        self._files: set[Path] = set()
        self._roots: set[Path] = set()

    def track(self, compiled_path: Path, project_root: Path) -> None:
        with self._lock:
            self._files.add(compiled_path)
            self._roots.add(project_root)

    @property
    def files(self) -> set[Path]:
        with self._lock:
            return set(self._files)

    @property
    def roots(self) -> set[Path]:
        with self._lock:
            return set(self._roots)

    def cleanup(self) -> None:
        """Remove tracked artifacts, then the cache directories holding them.

        Failures are logged and skipped.
        """
        with self._lock:
            files = list(self._files)
            roots = list(self._roots)
            self._files.clear()
            self._roots.clear()

        for path in files:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.debug("Failed to remove compiled module", path=str(path), error=str(e))

        for root in roots:
            try:
                remove_cache_dir(root, self.cache_dir_name)
            except OSError as e:
                logger.debug("Failed to remove cache directory", root=str(root), error=str(e))


class PathAliasFinder(importlib.abc.MetaPathFinder):
    """Meta path finder mapping aliased module names to project files.

    Alias patterns are dotted module names with an optional ``*`` wildcard.
    The wildcard capture has its dots turned into path separators before
    being substituted into each target.
    """

    def __init__(self, options: CompilerOptions, external: Sequence[str] = DEFAULT_EXTERNAL_SCOPES) -> None:
        self.options = options
        self.external = tuple(external)

    def resolve(self, fullname: str) -> Optional[Path]:
        """Resolve a module name to a file through the alias table."""
        if self._is_external(fullname):
            return None

        for pattern, targets in self.options.paths.items():
            capture = _match_alias(pattern, fullname)
            if capture is None:
                continue
            for target in targets:
                candidate = str(self.options.base_url / target.replace("*", capture.replace(".", "/")))
                for suffix in ALIAS_SUFFIXES:
                    path = Path(candidate + suffix)
                    if path.is_file():
                        return path
        return None

    def find_spec(
        self,
        fullname: str,
        path: Optional[Sequence[str]],
        target: Optional[ModuleType] = None,
    ) -> Optional[importlib.machinery.ModuleSpec]:
        resolved = self.resolve(fullname)
        if resolved is not None:
            logger.debug("Resolved path alias", module=fullname, path=str(resolved))
            if resolved.name == "__init__.py":
                return importlib.util.spec_from_file_location(
                    fullname, resolved, submodule_search_locations=[str(resolved.parent)]
                )
            return importlib.util.spec_from_file_location(fullname, resolved)

        # Parent of a wildcard alias with no real package behind it
        if self._is_alias_parent(fullname) and importlib.machinery.PathFinder.find_spec(fullname, path) is None:
            spec = importlib.machinery.ModuleSpec(fullname, None, is_package=True)
            spec.submodule_search_locations = []
            return spec
        return None

    def _is_external(self, fullname: str) -> bool:
        return fullname.split(".")[0] in self.external

    def _is_alias_parent(self, fullname: str) -> bool:
        for pattern in self.options.paths:
            prefix = pattern.split("*", 1)[0]
            if "*" in pattern and prefix.startswith(fullname + "."):
                return True
        return False


def _match_alias(pattern: str, fullname: str) -> Optional[str]:
    if "*" not in pattern:
        return "" if pattern == fullname else None

    prefix, suffix = pattern.split("*", 1)
    if len(fullname) < len(prefix) + len(suffix):
        return None
    if not (fullname.startswith(prefix) and fullname.endswith(suffix)):
        return None
    return fullname[len(prefix): len(fullname) - len(suffix)]


def _agent_package(name: str, directory: str) -> ModuleType:
    spec = importlib.machinery.ModuleSpec(name, None, is_package=True)
    spec.submodule_search_locations = [directory]
    return importlib.util.module_from_spec(spec)


def _read_source_stamp(compiled: Path) -> Optional[tuple[int, int]]:
    """Source mtime and size recorded in a timestamp-based pyc header."""
    with compiled.open("rb") as f:
        header = f.read(PYC_HEADER_SIZE)
    if len(header) < PYC_HEADER_SIZE or header[:4] != importlib.util.MAGIC_NUMBER:
        return None
    if int.from_bytes(header[4:8], "little") != 0:
        return None
    return int.from_bytes(header[8:12], "little"), int.from_bytes(header[12:16], "little")


class ModuleCompiler:
    """Compiles agent files into cached bytecode and loads them.

    Modules under an externalized scope (``adkit`` and anything listed in
    ``compiler.external``) always come from the host interpreter, so agent
    code shares the host's classes. Other modules imported from inside the
    project root are dropped from ``sys.modules`` before each load so a
    reload sees edited helpers.

    Example:
        compiler = ModuleCompiler(CacheRegistry())
        compiled = compiler.compile(Path("agents/foo/agent.py"), project_root)
        module = compiler.load(compiled, Path("agents/foo/agent.py"), project_root)
    """

    def __init__(
        self,
        registry: Optional[CacheRegistry] = None,
        cache_dir_name: str = CACHE_DIR_NAME,
        external_scopes: Sequence[str] = DEFAULT_EXTERNAL_SCOPES,
    ) -> None:
        self.registry = registry or CacheRegistry(cache_dir_name)
        self.cache_dir_name = cache_dir_name
        self.external_scopes = tuple(external_scopes)

    def compiled_path_for(self, source_path: Path, project_root: Path) -> Path:
        return project_root / self.cache_dir_name / f"agent-{cache_key(source_path)}.pyc"

    def compile(self, source_path: Path, project_root: Path) -> Path:
        """Compile an agent file, reusing a fresh cached artifact.

        Raises:
            CompilationError: If the file is missing or does not compile
        """
        source = Path(source_path).resolve()
        if not source.is_file():
            raise CompilationError(f"Agent file not found: {source}", source_path=str(source))

        compiled = self.compiled_path_for(source, project_root)
        options = CompilerOptions.load(project_root)

        if self._is_fresh(compiled, source, options):
            logger.debug("Reusing compiled module", source=str(source), compiled=str(compiled))
            self.registry.track(compiled, project_root)
            return compiled

        if compiled.exists():
            compiled.unlink()
        compiled.parent.mkdir(parents=True, exist_ok=True)

        try:
            py_compile.compile(
                str(source),
                cfile=str(compiled),
                doraise=True,
                invalidation_mode=py_compile.PycInvalidationMode.TIMESTAMP,
            )
        except py_compile.PyCompileError as e:
            raise CompilationError(
                f"Failed to compile {source.name}: {e.msg}",
                source_path=str(source),
            ) from e

        self.registry.track(compiled, project_root)
        logger.debug("Compiled agent module", source=str(source), compiled=str(compiled))
        return compiled

    def create_module(self, compiled_path: Path, source_path: Path) -> ModuleType:
        """Create an unexecuted module object for a compiled artifact.

        The module is a submodule of a synthetic package rooted at the agent's
        directory, so relative imports of sibling files resolve.
        """
        source = Path(source_path).resolve()
        package_name = f"_adk_agent_{cache_key(source)}_{next(_module_counter)}"
        module_name = f"{package_name}.{source.stem}"
        loader = importlib.machinery.SourcelessFileLoader(module_name, str(compiled_path))
        spec = importlib.util.spec_from_loader(module_name, loader)
        if spec is None:
            raise CompilationError(f"Cannot create module for {source}", source_path=str(source))

        module = importlib.util.module_from_spec(spec)
        module.__file__ = str(source)
        module.__package__ = package_name
        return module

    def execute(self, module: ModuleType, project_root: Path) -> ModuleType:
        """Execute a module created by create_module() inside the project.

        The project root and the agent's directory are importable while the
        module runs. On failure the module keeps whatever it defined before
        the error.

        Raises:
            CompilationError: If a module imported by the agent is missing
        """
        spec = module.__spec__
        if spec is None or spec.loader is None or not module.__package__:
            raise CompilationError(
                f"Module {module.__name__} was not created by create_module()",
                source_path=getattr(module, "__file__", None),
            )

        options = CompilerOptions.load(project_root)
        external = self.external_scopes + tuple(options.external)
        self._evict_project_modules(project_root, external)

        logger.debug("Executing agent module", module=module.__name__, **describe_options(options))

        agent_dir = str(Path(str(module.__file__)).parent)
        package = _agent_package(module.__package__, agent_dir)
        search_paths = list(dict.fromkeys([agent_dir, str(project_root)]))
        finder = PathAliasFinder(options, external)
        sys.path[0:0] = search_paths
        sys.meta_path.insert(0, finder)
        # Stay registered after success; evicted with other project modules on the next load
        sys.modules[package.__name__] = package
        sys.modules[module.__name__] = module
        try:
            spec.loader.exec_module(module)
        except ModuleNotFoundError as e:
            self._unregister(module, package)
            raise self._missing_module_error(e, module, project_root) from e
        except BaseException:
            self._unregister(module, package)
            raise
        finally:
            if finder in sys.meta_path:
                sys.meta_path.remove(finder)
            for entry in search_paths:
                if entry in sys.path:
                    sys.path.remove(entry)
        return module

    def load(self, compiled_path: Path, source_path: Path, project_root: Path) -> ModuleType:
        """Create and execute a compiled agent module."""
        module = self.create_module(compiled_path, source_path)
        return self.execute(module, project_root)

    def _is_fresh(self, compiled: Path, source: Path, options: CompilerOptions) -> bool:
        if not compiled.is_file():
            return False
        # Same check the interpreter applies to __pycache__ entries
        source_stat = source.stat()
        recorded = _read_source_stamp(compiled)
        if recorded != (int(source_stat.st_mtime) & 0xFFFFFFFF, source_stat.st_size & 0xFFFFFFFF):
            return False
        if options.source is not None and options.source.is_file():
            return compiled.stat().st_mtime >= options.source.stat().st_mtime
        return True

    @staticmethod
    def _unregister(module: ModuleType, package: ModuleType) -> None:
        sys.modules.pop(module.__name__, None)
        sys.modules.pop(package.__name__, None)

    def _evict_project_modules(self, project_root: Path, external: Sequence[str]) -> None:
        root = project_root.resolve()
        for name, module in list(sys.modules.items()):
            if name.split(".")[0] in external:
                continue
            module_file = getattr(module, "__file__", None)
            if not module_file:
                # Agent packages have a search location but no file
                locations = list(getattr(module, "__path__", None) or [])
                module_file = locations[0] if locations else None
            if not module_file:
                continue
            path = Path(module_file).resolve()
            if root not in path.parents:
                continue
            if _ENVIRONMENT_DIRS.intersection(path.relative_to(root).parts):
                continue
            del sys.modules[name]

    def _missing_module_error(
        self, error: ModuleNotFoundError, module: ModuleType, project_root: Path
    ) -> CompilationError:
        missing = error.name or str(error)
        package = missing.split(".")[0]
        hint = (
            f"Cannot find module '{missing}'. If '{package}' is a dependency of the agent, "
            f"install it in the environment of the agent project ({project_root}) "
            "rather than in a parent workspace, e.g. `pip install "
            f"{package}`."
        )
        return CompilationError(
            f"Failed to load {Path(str(module.__file__)).name}: {error}",
            source_path=module.__file__,
            hint=hint,
        )


def describe_options(options: CompilerOptions) -> dict[str, Any]:
    """Summary of compiler options for logging."""
    return {
        "base_url": str(options.base_url),
        "aliases": sorted(options.paths),
        "external": options.external,
    }
