"""Pydantic v2 models for feature-request planning.

A ``DomainCatalog`` declares the specialist domains, what each one
provides to and requires from the others, and the words that identify its
work.  Decomposition produces a ``TaskGraph`` of ``TaskNode`` objects that
must always form a DAG.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class CyclicPlanError(Exception):
    """Raised when task dependencies form a cycle.

    Attributes:
        cycle: Sorted ids of the tasks that participate in a cycle.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = sorted(cycle)
        super().__init__(f"Task plan contains a cycle through: {', '.join(self.cycle)}")


# ---------------------------------------------------------------------------
# Domain catalog
# ---------------------------------------------------------------------------

class DomainSpec(BaseModel):
    """One specialist domain."""
    name: str = Field(..., description="Domain identifier, e.g. 'schema'")
    description: str = Field(default="")
    vocabulary: list[str] = Field(default_factory=list, description="Lowercase keywords")
    provides: list[str] = Field(default_factory=list, description="Outputs other domains consume")
    requires: list[str] = Field(default_factory=list, description="Inputs consumed from others")
    on_new_resource: bool = Field(
        default=True, description="Whether introducing a resource creates a task here"
    )
    done_criterion: str = Field(
        default="{domain} work for {target} is composed into the project",
        description="Template with {domain}, {target}, {singular}, {plural}, {pascal}, {kebab}",
    )

    @field_validator("vocabulary")
    @classmethod
    def _lowercase(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(word.strip().lower() for word in value if word.strip()))


class DomainCatalog(BaseModel):
    """Ordered set of domains plus the generalist fallback."""
    domains: list[DomainSpec] = Field(default_factory=list)
    fallback: str = Field(default="orchestrator", description="Generalist domain name")

    @model_validator(mode="after")
    def _unique_names(self) -> "DomainCatalog":
        names = [domain.name for domain in self.domains]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate domain names: {', '.join(duplicates)}")
        return self

    def get(self, name: str) -> Optional[DomainSpec]:
        for domain in self.domains:
            if domain.name == name:
                return domain
        return None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    @property
    def names(self) -> list[str]:
        return [domain.name for domain in self.domains]

    @classmethod
    def load(cls, path: Path) -> "DomainCatalog":
        """Load a catalog from JSON."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

    @classmethod
    def default(cls) -> "DomainCatalog":
        """The built-in schema / api / types / middleware catalog."""
        return cls(domains=[
            DomainSpec(
                name="schema",
                description="Prisma models and relations",
                vocabulary=[
                    "model", "models", "schema", "prisma", "database", "db", "table",
                    "column", "field", "fields", "migration", "relation", "relations", "index",
                ],
                provides=["model"],
                done_criterion="model {pascal} is present in prisma/schema.prisma",
            ),
            DomainSpec(
                name="api",
                description="Validators, services, controllers and routes",
                vocabulary=[
                    "route", "routes", "endpoint", "endpoints", "controller", "controllers",
                    "api", "rest", "http", "crud", "service", "services", "pagination",
                    "validation", "list", "get", "show", "read", "create", "update", "edit",
                    "delete", "remove",
                ],
                provides=["endpoint"],
                requires=["model"],
                done_criterion="routes for /{kebab_plural} are registered in src/routes/index.ts",
            ),
            DomainSpec(
                name="types",
                description="TypeScript interfaces and input types",
                vocabulary=[
                    "type", "types", "typescript", "interface", "interfaces", "dto", "dtos",
                    "typing", "typings", "enum",
                ],
                provides=["types"],
                requires=["model"],
                done_criterion="interface {pascal} is exported from src/types/{kebab}.types.ts",
            ),
            DomainSpec(
                name="middleware",
                description="Request middleware",
                vocabulary=[
                    "middleware", "auth", "authentication", "authorization", "rate", "limit",
                    "limiting", "ratelimit", "logging", "logger", "cors", "guard",
                ],
                provides=["middleware"],
                on_new_resource=False,
                done_criterion="middleware for {target} is present in src/middleware",
            ),
        ])


# ---------------------------------------------------------------------------
# Task graph
# ---------------------------------------------------------------------------

class TaskNode(BaseModel):
    """One unit of planned work."""
    id: str = Field(..., description="Unique task id, e.g. 'schema.comment'")
    description: str = Field(..., description="Clause of the request this task implements")
    tag: Optional[str] = Field(default=None, description="Domain proposed by decomposition")
    owner_domain: Optional[str] = Field(default=None, description="Domain assigned by routing")
    depends_on: list[str] = Field(default_factory=list, description="Sorted prerequisite ids")
    parallelizable: bool = Field(default=False)
    done_criterion: str = Field(default="", description="Predicate describing completion")
    resource: Optional[str] = Field(default=None, description="Resource the task concerns")
    split_from: Optional[str] = Field(default=None, description="Id of the task this was split from")
    capabilities: list[str] = Field(
        default_factory=list, description="API capabilities the request names; empty means all"
    )

    @field_validator("depends_on")
    @classmethod
    def _sorted_unique(cls, value: list[str]) -> list[str]:
        return sorted(set(value))


class TaskGraph(BaseModel):
    """A set of task nodes connected by ``depends_on`` edges."""
    nodes: list[TaskNode] = Field(default_factory=list)

    def get(self, task_id: str) -> TaskNode:
        for node in self.nodes:
            if node.id == task_id:
                return node
        raise KeyError(task_id)

    @property
    def ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def roots(self) -> list[TaskNode]:
        return [node for node in self.nodes if not node.depends_on]

    def dependents(self, task_id: str) -> list[TaskNode]:
        return [node for node in self.nodes if task_id in node.depends_on]

    def ancestors(self, task_id: str) -> set[str]:
        """Ids of every task *task_id* transitively depends on."""
        seen: set[str] = set()
        stack = list(self.get(task_id).depends_on)
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.get(current).depends_on)
        return seen

    def descendants(self, task_id: str) -> set[str]:
        """Ids of every task that transitively depends on *task_id*."""
        seen: set[str] = set()
        stack = [node.id for node in self.dependents(task_id)]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(node.id for node in self.dependents(current))
        return seen

    # -- Validation ------------------------------------------------------------

    def validate_dag(self) -> None:
        """Check ids are unique, edges resolve and there is no cycle.

        Raises:
            ValueError: On duplicate ids or dangling dependencies.
            CyclicPlanError: If any task transitively depends on itself.
        """
        ids = self.ids
        if len(ids) != len(set(ids)):
            duplicates = sorted({task_id for task_id in ids if ids.count(task_id) > 1})
            raise ValueError(f"Duplicate task ids: {', '.join(duplicates)}")
        known = set(ids)
        for node in self.nodes:
            missing = [dep for dep in node.depends_on if dep not in known]
            if missing:
                raise ValueError(f"Task {node.id!r} depends on unknown task(s): {', '.join(missing)}")
        self.topological_order()

    def topological_order(self) -> list[str]:
        """Kahn's algorithm; ties keep node order.

        Raises:
            CyclicPlanError: Naming the tasks that lie on a cycle.
        """
        indegree = {node.id: len(node.depends_on) for node in self.nodes}
        ready = [node.id for node in self.nodes if indegree[node.id] == 0]
        order: list[str] = []
        while ready:
            current = ready.pop(0)
            order.append(current)
            for node in self.dependents(current):
                indegree[node.id] -= 1
                if indegree[node.id] == 0:
                    ready.append(node.id)

        if len(order) != len(self.nodes):
            remaining = [node.id for node in self.nodes if node.id not in order]
            raise CyclicPlanError(self._cycle_members(remaining))
        return order

    def _cycle_members(self, remaining: list[str]) -> list[str]:
        # Kahn leaves cycle members plus everything downstream of them;
        # keep only the nodes that can reach themselves.
        pending = set(remaining)
        members: list[str] = []
        for start in remaining:
            stack = [dep for dep in self.get(start).depends_on if dep in pending]
            seen: set[str] = set()
            while stack:
                current = stack.pop()
                if current == start:
                    members.append(start)
                    break
                if current in seen:
                    continue
                seen.add(current)
                stack.extend(dep for dep in self.get(current).depends_on if dep in pending)
        return members or remaining

    # -- Scheduling ------------------------------------------------------------

    def waves(self) -> list[list[TaskNode]]:
        """Group nodes by dependency depth; each wave depends only on earlier waves."""
        depth: dict[str, int] = {}
        for task_id in self.topological_order():
            node = self.get(task_id)
            depth[task_id] = 1 + max((depth[dep] for dep in node.depends_on), default=-1)
        grouped: list[list[TaskNode]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
        for node in self.nodes:
            grouped[depth[node.id]].append(node)
        return grouped

    def refresh_parallelism(self) -> None:
        """Mark nodes that have at least one unrelated node as parallelizable."""
        related = {
            node.id: self.ancestors(node.id) | self.descendants(node.id) | {node.id}
            for node in self.nodes
        }
        for node in self.nodes:
            node.parallelizable = any(other not in related[node.id] for other in self.ids)
