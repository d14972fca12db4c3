"""
dil-core verification checkers

File: src/dil_core/verification_plane/checkers/__init__.py

Purpose
- Importing this package registers the built-in checkers in ``DEFAULT_CHECKER_REGISTRY``.
"""

from dil_core.verification_plane.checkers.base import (
    DEFAULT_CHECKER_REGISTRY,
    BaseChecker,
    CheckerContext,
    CheckerFactory,
    CheckerRegistration,
    CheckerRegistry,
    CheckOutcome,
    CheckStatus,
    CommandExecutor,
    CommandResult,
    CommandSpec,
    EvidenceScalar,
    LocalSubprocessExecutor,
    register_builtin_checker,
)
from dil_core.verification_plane.checkers.command_exit import CommandExitChecker
from dil_core.verification_plane.checkers.file_exists import FileExistsChecker
from dil_core.verification_plane.checkers.http_endpoint import HttpEndpointChecker

__all__ = [
    "DEFAULT_CHECKER_REGISTRY",
    "BaseChecker",
    "CheckOutcome",
    "CheckStatus",
    "CheckerContext",
    "CheckerFactory",
    "CheckerRegistration",
    "CheckerRegistry",
    "CommandExecutor",
    "CommandExitChecker",
    "CommandResult",
    "CommandSpec",
    "EvidenceScalar",
    "FileExistsChecker",
    "HttpEndpointChecker",
    "LocalSubprocessExecutor",
    "register_builtin_checker",
]
