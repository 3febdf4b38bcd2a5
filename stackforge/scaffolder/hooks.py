"""Post-write hooks.

``TypeCheckHook`` runs the project's type checker after a file mutation.
It only runs once the project has been initialised (its marker file exists
at the project root) and its outcome is reported, never enforced: a failing
type check does not undo writes that already happened.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..config import TypeCheckConfig
from ..utils import run_command

# Diagnostics beyond this many lines are truncated.
_MAX_DIAGNOSTICS = 50


class HookResult(BaseModel):
    """Outcome of one post-write hook invocation."""
    path: str = Field(default="", description="File whose mutation triggered the hook")
    ran: bool = Field(..., description="Whether the type-check command was executed")
    passed: bool = Field(..., description="True if the command succeeded or did not run")
    diagnostics: list[str] = Field(default_factory=list)
    skipped_reason: str = Field(default="")


class TypeCheckHook:
    """Runs the configured type-check command gated on a marker file."""

    def __init__(self, project_root: str | Path, config: Optional[TypeCheckConfig] = None) -> None:
        self.project_root = Path(project_root)
        self.config = config or TypeCheckConfig()

    @property
    def marker_path(self) -> Path:
        return self.project_root / self.config.marker

    async def __call__(self, path: str = "") -> HookResult:
        if not self.config.enabled:
            return HookResult(path=path, ran=False, passed=True, skipped_reason="type check disabled")
        if not self.marker_path.exists():
            return HookResult(
                path=path,
                ran=False,
                passed=True,
                skipped_reason=f"{self.config.marker} not found in {self.project_root}",
            )

        returncode, stdout, stderr = await run_command(
            self.config.command,
            cwd=self.project_root,
            timeout=self.config.timeout,
        )
        diagnostics = [
            line.rstrip() for line in f"{stdout}\n{stderr}".splitlines() if line.strip()
        ]
        if len(diagnostics) > _MAX_DIAGNOSTICS:
            hidden = len(diagnostics) - _MAX_DIAGNOSTICS
            diagnostics = diagnostics[:_MAX_DIAGNOSTICS] + [f"... {hidden} more line(s)"]
        return HookResult(path=path, ran=True, passed=returncode == 0, diagnostics=diagnostics)
