"""Specialist routing.

Assigns every task to exactly one domain.  Rules apply in priority order:

1. an explicit domain tag that the catalog knows,
2. keyword overlap, scored by the registered handler's ``match`` or, for
   domains without a handler, by the domain vocabulary,
3. the catalog's generalist fallback.

A tie under rule 2 splits the task into one sub-task per tied domain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .decomposer import TaskDecomposer, keyword_score, task_words
from .models import DomainCatalog, TaskGraph, TaskNode

if TYPE_CHECKING:
    from .handlers import HandlerRegistry


@dataclass
class RouteDecision:
    """Result of routing one task: an owner, or the sub-tasks it was split into."""

    task: TaskNode
    rule: str  # "tag", "keywords", "fallback" or "split"
    owner: Optional[str] = None
    subtasks: list[TaskNode] = field(default_factory=list)
    scores: dict[str, float] = field(default_factory=dict)

    @property
    def is_split(self) -> bool:
        return bool(self.subtasks)

    @property
    def leaves(self) -> list[TaskNode]:
        return self.subtasks or [self.task]


class SpecialistRouter:
    """Routes tasks to domains using the catalog and an optional handler registry."""

    def __init__(self, registry: Optional["HandlerRegistry"] = None) -> None:
        self.registry = registry

    def score(self, task: TaskNode, catalog: DomainCatalog) -> dict[str, float]:
        """Keyword score per catalog domain, in catalog order."""
        description_words = task_words(task.description)
        scores: dict[str, float] = {}
        for domain in catalog.domains:
            handler = self.registry.get(domain.name) if self.registry else None
            if handler is not None:
                scores[domain.name] = float(handler.match(task))
            else:
                scores[domain.name] = keyword_score(description_words, domain.vocabulary)
        return scores

    def route(self, task: TaskNode, catalog: DomainCatalog) -> RouteDecision:
        if task.tag and task.tag in catalog:
            owned = task.model_copy(update={"owner_domain": task.tag})
            return RouteDecision(task=owned, rule="tag", owner=task.tag)

        scores = self.score(task, catalog)
        best = max(scores.values(), default=0.0)
        if best <= 0:
            owned = task.model_copy(update={"owner_domain": catalog.fallback})
            return RouteDecision(task=owned, rule="fallback", owner=catalog.fallback, scores=scores)

        winners = [name for name, value in scores.items() if value == best]
        if len(winners) == 1:
            owned = task.model_copy(update={"owner_domain": winners[0]})
            return RouteDecision(task=owned, rule="keywords", owner=winners[0], scores=scores)

        subtasks = [
            task.model_copy(update={
                "id": f"{task.id}/{name}",
                "tag": name,
                "owner_domain": name,
                "split_from": task.id,
                "depends_on": list(task.depends_on),
                "description": f"{task.description} [{name}]",
            })
            for name in winners
        ]
        return RouteDecision(task=task, rule="split", subtasks=subtasks, scores=scores)


def build_plan(
    request: str,
    catalog: Optional[DomainCatalog] = None,
    router: Optional[SpecialistRouter] = None,
) -> TaskGraph:
    """Decompose *request* and route every task.

    Dependents of a split task are rewired to depend on all of its
    sub-tasks, parallelism is recomputed and the result re-validated.

    Raises:
        CyclicPlanError: If decomposition or rewiring yields a cycle.
    """
    catalog = catalog or DomainCatalog.default()
    router = router or SpecialistRouter()
    graph = TaskDecomposer(catalog).decompose(request)

    nodes: list[TaskNode] = []
    replacements: dict[str, list[str]] = {}
    for node in graph.nodes:
        decision = router.route(node, catalog)
        if decision.is_split:
            replacements[node.id] = [sub.id for sub in decision.subtasks]
        nodes.extend(decision.leaves)

    for node in nodes:
        rewired: list[str] = []
        for dep in node.depends_on:
            rewired.extend(replacements.get(dep, [dep]))
        node.depends_on = sorted(set(rewired))

    plan = TaskGraph(nodes=nodes)
    plan.validate_dag()
    plan.refresh_parallelism()
    return plan
