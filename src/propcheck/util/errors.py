"""Typed exceptions for the rule engine."""

from __future__ import annotations

from typing import Optional


class RuleEngineError(Exception):
    """Base for evaluation failures that are reported, never fatal."""

    code = "SYS-000"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidInput(RuleEngineError, ValueError):
    """Raised when a rule set or account snapshot is malformed or incomplete."""

    code = "SYS-001"


class ComputationImpossible(RuleEngineError):
    """Raised when the inputs are well-formed but cannot be evaluated."""

    code = "SYS-002"


class CatalogLoadError(ValueError):
    """Raised when a firm catalog or rule set file cannot be loaded or validated."""


class UnknownProgram(KeyError):
    """Raised when a firm/program pair is not present in the catalog."""


class SimulationTransportError(Exception):
    """Raised by a simulation backend when the request could not complete."""
