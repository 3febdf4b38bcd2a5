"""Plan execution.

Runs a routed :class:`TaskGraph` wave by wave.  Tasks in one wave have no
dependencies on each other; those whose artifacts touch disjoint paths are
composed concurrently, and tasks that share a path are deferred to a later
round of the same wave.  Sibling sub-tasks split from one task must not
share a path: that is reported as a ``PathConflict``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

from rich.table import Table

from ..scaffolder.composer import ComposeConflict, ComposeError, FileSetComposer
from ..utils import console, format_duration
from .handlers import ExecutionContext, HandlerRegistry, TaskResult
from .models import TaskGraph, TaskNode


@dataclass
class ExecutionReport:
    """Results of running a plan, in execution order."""

    results: list[TaskResult] = field(default_factory=list)
    waves: list[list[str]] = field(default_factory=list)
    duration: float = 0.0

    @property
    def done(self) -> bool:
        return all(result.done for result in self.results)

    @property
    def written(self) -> list[str]:
        paths: list[str] = []
        for result in self.results:
            paths.extend(path for path in result.written if path not in paths)
        return paths

    def result_for(self, task_id: str) -> TaskResult:
        for result in self.results:
            if result.task_id == task_id:
                return result
        raise KeyError(task_id)

    def print_summary(self) -> None:
        table = Table(title="Plan Execution", show_header=True, header_style="bold cyan")
        table.add_column("Task", no_wrap=True)
        table.add_column("Domain", style="dim")
        table.add_column("Written", justify="right")
        table.add_column("Skipped", justify="right")
        table.add_column("Status")
        for result in self.results:
            status = "[green]done[/green]" if result.done else "[red]pending[/red]"
            table.add_row(result.task_id, result.domain, str(len(result.written)), str(result.skipped), status)
        console.print(table)
        console.print(f"[dim]{len(self.results)} task(s) in {format_duration(self.duration)}[/dim]")


class PlanExecutor:
    """Executes routed tasks through their handlers and the shared composer."""

    def __init__(
        self,
        registry: HandlerRegistry,
        composer: FileSetComposer,
        context: ExecutionContext,
    ) -> None:
        self.registry = registry
        self.composer = composer
        self.context = context

    async def run(self, graph: TaskGraph) -> ExecutionReport:
        """Execute *graph*.

        Raises:
            CyclicPlanError: Before anything runs, if the graph has a cycle.
            ValueError: If a task has not been routed to an owner.
            ComposeError: If split siblings target the same path, or a
                composition conflicts with the tree.
        """
        graph.validate_dag()
        unrouted = [node.id for node in graph.nodes if node.owner_domain is None]
        if unrouted:
            raise ValueError(f"Tasks have no owner; route the plan first: {', '.join(unrouted)}")

        started = time.monotonic()
        report = ExecutionReport()
        for wave in graph.waves():
            report.waves.append([node.id for node in wave])
            results = [self._execute(node) for node in wave]
            _check_split_siblings(wave, results)
            for round_ in _rounds(results):
                await self._compose_round(round_)
            report.results.extend(results)
        report.duration = time.monotonic() - started
        return report

    def _execute(self, node: TaskNode) -> TaskResult:
        handler = self.registry.resolve(node.owner_domain)
        return handler.execute(node, self.context)

    async def _compose_round(self, round_: list[TaskResult]) -> None:
        """Compose *round_* concurrently. A failure cancels and awaits the rest."""
        tasks = [asyncio.ensure_future(self._compose(result)) for result in round_]
        try:
            await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _compose(self, result: TaskResult) -> None:
        outcome = await self.composer.apply(result.artifacts, owner=result.task_id)
        result.written = list(outcome.written)
        result.skipped = len(outcome.skipped)
        result.hook_results = list(outcome.hook_results)
        result.done = True


def _rounds(results: list[TaskResult]) -> list[list[TaskResult]]:
    """Partition *results* so no two members of a round share a path.

    Overlapping results keep their relative order across rounds.
    """
    placed: list[tuple[int, set[str]]] = []
    rounds: list[list[TaskResult]] = []
    for result in results:
        paths = result.paths
        position = 1 + max(
            (index for index, other in placed if other & paths),
            default=-1,
        )
        placed.append((position, paths))
        while len(rounds) <= position:
            rounds.append([])
        rounds[position].append(result)
    return rounds


def _check_split_siblings(wave: list[TaskNode], results: list[TaskResult]) -> None:
    by_parent: dict[str, list[tuple[TaskNode, TaskResult]]] = {}
    for node, result in zip(wave, results):
        if node.split_from is not None:
            by_parent.setdefault(node.split_from, []).append((node, result))

    for siblings in by_parent.values():
        owners: dict[str, str] = {}
        for node, result in siblings:
            for path in sorted(result.paths):
                holder: Optional[str] = owners.get(path)
                if holder is not None and holder != node.id:
                    raise ComposeError(ComposeConflict.PATH_CONFLICT, path, holder, node.id)
                owners[path] = node.id
