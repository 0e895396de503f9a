"""Validation result types shared by the commit gate and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Severity = Literal["pass", "warn", "fail"]


@dataclass
class ValidationCheck:
    """Result of a single validation check.

    Attributes:
        name: Identifier for the check.
        severity: "pass", "warn", or "fail".
        message: Human-readable description of the result.
        node_ids: Nodes the finding is about, if any.
    """

    name: str
    severity: Severity
    message: str = ""
    node_ids: list[str] = field(default_factory=list)


@dataclass
class ValidationReport:
    """Aggregated results of validation checks.

    Attributes:
        checks: List of individual validation check results.
        warnings_block: Whether warnings count as blocking for this report.
    """

    checks: list[ValidationCheck] = field(default_factory=list)
    warnings_block: bool = False

    @property
    def has_failures(self) -> bool:
        """True if any check has severity 'fail'."""
        return any(c.severity == "fail" for c in self.checks)

    @property
    def has_warnings(self) -> bool:
        """True if any check has severity 'warn'."""
        return any(c.severity == "warn" for c in self.checks)

    @property
    def is_blocking(self) -> bool:
        """True if this report must refuse a commit."""
        return self.has_failures or (self.warnings_block and self.has_warnings)

    @property
    def failures(self) -> list[ValidationCheck]:
        return [c for c in self.checks if c.severity == "fail"]

    def get(self, name: str) -> ValidationCheck | None:
        for check in self.checks:
            if check.name == name:
                return check
        return None

    @property
    def summary(self) -> str:
        """Human-readable summary of all checks."""
        fails = [c for c in self.checks if c.severity == "fail"]
        warns = [c for c in self.checks if c.severity == "warn"]
        passes = [c for c in self.checks if c.severity == "pass"]

        parts: list[str] = []
        if fails:
            parts.append(f"{len(fails)} failed")
        if warns:
            parts.append(f"{len(warns)} warnings")
        if passes:
            parts.append(f"{len(passes)} passed")
        return ", ".join(parts)
