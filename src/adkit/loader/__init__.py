"""Dynamic loading of user agent files."""

from adkit.loader.agent_loader import AgentLoader
from adkit.loader.classifier import EnvErrorClassification, ErrorClassifier
from adkit.loader.compiler import (
    CACHE_DIR_NAME,
    CacheRegistry,
    CompilerOptions,
    ModuleCompiler,
    PathAliasFinder,
    remove_cache_dir,
)
from adkit.loader.env import EnvLoader, EnvLoadResult
from adkit.loader.project import AGENT_FILE_NAME, find_project_root
from adkit.loader.resolver import ExportResolver, ResolvedAgent
from adkit.loader.scanner import AgentDescriptor, AgentScanner

__all__ = [
    "AGENT_FILE_NAME",
    "AgentDescriptor",
    "AgentLoader",
    "AgentScanner",
    "CACHE_DIR_NAME",
    "CacheRegistry",
    "CompilerOptions",
    "EnvErrorClassification",
    "EnvLoadResult",
    "EnvLoader",
    "ErrorClassifier",
    "ExportResolver",
    "ModuleCompiler",
    "PathAliasFinder",
    "ResolvedAgent",
    "find_project_root",
    "remove_cache_dir",
]
