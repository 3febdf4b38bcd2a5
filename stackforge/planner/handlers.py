"""Domain handlers and their registry.

A handler owns one domain: it scores how well a task matches its
vocabulary, turns a routed task into file artifacts via the template
expander, and optionally reviews a project tree.  Handlers are plain
classes sharing the ``DomainHandler`` protocol; the registry looks them up
by domain and by capability tag.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from ..reviewer.checks import api_findings, middleware_findings, schema_findings, types_findings
from ..reviewer.models import ReviewFinding
from ..scaffolder.expander import TemplateExpander
from ..scaffolder.hooks import HookResult
from ..scaffolder.models import (
    ALL_CAPABILITIES,
    Capability,
    FileArtifact,
    MiddlewareKind,
    ProjectTree,
    ResourceDescriptor,
)
from .decomposer import CAPABILITY_WORDS, keyword_score, task_words, words
from .models import DomainCatalog, TaskNode


# ---------------------------------------------------------------------------
# Execution data
# ---------------------------------------------------------------------------

@dataclass
class ExecutionContext:
    """What handlers need to execute a task."""

    expander: TemplateExpander
    descriptors: dict[str, ResourceDescriptor] = field(default_factory=dict)

    def descriptor_for(self, resource: str) -> ResourceDescriptor:
        """Known descriptor for *resource*, or a field-less one."""
        known = self.descriptors.get(resource)
        if known is not None:
            return known
        return ResourceDescriptor(name=resource)


@dataclass
class TaskResult:
    """Outcome of executing one task."""

    task_id: str
    domain: str
    artifacts: list[FileArtifact] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    skipped: int = 0
    hook_results: list[HookResult] = field(default_factory=list)
    done: bool = False

    @property
    def paths(self) -> set[str]:
        return {artifact.path for artifact in self.artifacts}


@runtime_checkable
class DomainHandler(Protocol):
    """Interface every domain handler implements."""

    domain: str
    capabilities: frozenset[str]

    def match(self, task: TaskNode) -> float: ...

    def execute(self, task: TaskNode, context: ExecutionContext) -> TaskResult: ...


def _default_vocabulary(domain: str) -> list[str]:
    spec = DomainCatalog.default().get(domain)
    return spec.vocabulary if spec else []


# ---------------------------------------------------------------------------
# Built-in handlers
# ---------------------------------------------------------------------------

class SchemaHandler:
    domain = "schema"
    capabilities = frozenset({"model", "relation"})

    def __init__(self, vocabulary: Optional[Iterable[str]] = None) -> None:
        self.vocabulary = list(vocabulary) if vocabulary is not None else _default_vocabulary(self.domain)

    def match(self, task: TaskNode) -> float:
        return keyword_score(task_words(task.description), self.vocabulary)

    def execute(self, task: TaskNode, context: ExecutionContext) -> TaskResult:
        result = TaskResult(task_id=task.id, domain=self.domain)
        if task.resource is None:
            result.notes.append("No resource named; nothing to model")
            return result
        result.artifacts = context.expander.expand_model(context.descriptor_for(task.resource))
        return result

    def review(self, tree: ProjectTree) -> list[ReviewFinding]:
        return schema_findings(tree)


class ApiHandler:
    """Scaffolds the validator/service/controller/route stack for a resource.

    The capabilities recorded on the task, or else those mentioned in its
    text ("list", "delete", ...), narrow the selection; otherwise every
    capability is generated.
    """

    domain = "api"
    capabilities = frozenset({"endpoint", *(cap.value for cap in Capability)})

    def __init__(self, vocabulary: Optional[Iterable[str]] = None) -> None:
        self.vocabulary = list(vocabulary) if vocabulary is not None else _default_vocabulary(self.domain)

    def match(self, task: TaskNode) -> float:
        return keyword_score(task_words(task.description), self.vocabulary)

    def capabilities_for(self, task: TaskNode) -> list[Capability]:
        if task.capabilities:
            return [Capability(value) for value in dict.fromkeys(task.capabilities)]
        # The leading verb ("create comments") is not a capability request.
        selected = [CAPABILITY_WORDS[w] for w in task_words(task.description) if w in CAPABILITY_WORDS]
        return list(dict.fromkeys(selected)) or list(ALL_CAPABILITIES)

    def execute(self, task: TaskNode, context: ExecutionContext) -> TaskResult:
        result = TaskResult(task_id=task.id, domain=self.domain)
        if task.resource is None:
            result.notes.append("No resource named; nothing to route")
            return result
        result.artifacts = context.expander.expand(
            context.descriptor_for(task.resource), self.capabilities_for(task)
        )
        return result

    def review(self, tree: ProjectTree) -> list[ReviewFinding]:
        return api_findings(tree)


class TypesHandler:
    domain = "types"
    capabilities = frozenset({"types"})

    def __init__(self, vocabulary: Optional[Iterable[str]] = None) -> None:
        self.vocabulary = list(vocabulary) if vocabulary is not None else _default_vocabulary(self.domain)

    def match(self, task: TaskNode) -> float:
        return keyword_score(task_words(task.description), self.vocabulary)

    def execute(self, task: TaskNode, context: ExecutionContext) -> TaskResult:
        result = TaskResult(task_id=task.id, domain=self.domain)
        if task.resource is None:
            result.notes.append("No resource named; nothing to type")
            return result
        result.artifacts = context.expander.expand_types(context.descriptor_for(task.resource))
        return result

    def review(self, tree: ProjectTree) -> list[ReviewFinding]:
        return types_findings(tree)


class MiddlewareHandler:
    domain = "middleware"
    capabilities = frozenset({"middleware", *(kind.value for kind in MiddlewareKind)})

    _KIND_WORDS: dict[str, MiddlewareKind] = {
        "auth": MiddlewareKind.AUTH,
        "authentication": MiddlewareKind.AUTH,
        "authorization": MiddlewareKind.AUTH,
        "guard": MiddlewareKind.AUTH,
        "rate": MiddlewareKind.RATE_LIMIT,
        "ratelimit": MiddlewareKind.RATE_LIMIT,
        "limiting": MiddlewareKind.RATE_LIMIT,
        "throttle": MiddlewareKind.RATE_LIMIT,
        "throttling": MiddlewareKind.RATE_LIMIT,
        "logging": MiddlewareKind.LOGGING,
        "logger": MiddlewareKind.LOGGING,
        "validate": MiddlewareKind.VALIDATE,
        "validation": MiddlewareKind.VALIDATE,
    }

    def __init__(self, vocabulary: Optional[Iterable[str]] = None) -> None:
        self.vocabulary = list(vocabulary) if vocabulary is not None else _default_vocabulary(self.domain)

    def match(self, task: TaskNode) -> float:
        return keyword_score(task_words(task.description), self.vocabulary)

    def kind_for(self, task: TaskNode) -> MiddlewareKind:
        for word in words(task.description):
            if word in self._KIND_WORDS:
                return self._KIND_WORDS[word]
        return MiddlewareKind.CUSTOM

    def execute(self, task: TaskNode, context: ExecutionContext) -> TaskResult:
        kind = self.kind_for(task)
        name = f"{task.resource}Middleware" if kind is MiddlewareKind.CUSTOM and task.resource else None
        return TaskResult(
            task_id=task.id,
            domain=self.domain,
            artifacts=context.expander.expand_middleware(kind, name),
        )

    def review(self, tree: ProjectTree) -> list[ReviewFinding]:
        return middleware_findings(tree)


class GeneralistHandler:
    """Fallback owner for work no specialist claims; records it for follow-up."""

    capabilities: frozenset[str] = frozenset()

    def __init__(self, domain: str = "orchestrator") -> None:
        self.domain = domain

    def match(self, task: TaskNode) -> float:
        return 0.0

    def execute(self, task: TaskNode, context: ExecutionContext) -> TaskResult:
        return TaskResult(
            task_id=task.id,
            domain=self.domain,
            notes=[f"No specialist handles {task.description!r}; left for manual follow-up"],
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class HandlerRegistry:
    """Handlers keyed by domain, searchable by capability tag."""

    def __init__(self, fallback: Optional[DomainHandler] = None) -> None:
        self._handlers: dict[str, DomainHandler] = {}
        self.fallback: DomainHandler = fallback or GeneralistHandler()

    def register(self, handler: DomainHandler) -> None:
        """Register *handler*, replacing any handler for the same domain."""
        self._handlers[handler.domain] = handler

    def get(self, domain: str) -> Optional[DomainHandler]:
        return self._handlers.get(domain)

    def resolve(self, domain: Optional[str]) -> DomainHandler:
        """Handler for *domain*, or the generalist fallback."""
        if domain is not None and domain in self._handlers:
            return self._handlers[domain]
        return self.fallback

    def __contains__(self, domain: object) -> bool:
        return domain in self._handlers

    @property
    def domains(self) -> list[str]:
        return list(self._handlers)

    def reviewers(self) -> list[DomainHandler]:
        """Handlers that can review a project tree, in registration order."""
        return [handler for handler in self._handlers.values() if callable(getattr(handler, "review", None))]

    @classmethod
    def default(cls, catalog: Optional[DomainCatalog] = None) -> "HandlerRegistry":
        """Built-in handlers, using *catalog* vocabularies where it defines the domain."""
        catalog = catalog or DomainCatalog.default()
        registry = cls(fallback=GeneralistHandler(catalog.fallback))
        for handler_cls in (SchemaHandler, ApiHandler, TypesHandler, MiddlewareHandler):
            spec = catalog.get(handler_cls.domain)
            if spec is None:
                continue
            registry.register(handler_cls(spec.vocabulary))
        return registry
