"""Invocation surface for stackforge.

``Workbench`` ties the pieces together for one project: it expands
descriptors into artifacts, composes them into the project tree (writing
changed files to disk and running the post-write type check), plans and
executes multi-part feature requests, and aggregates specialist reviews.

Quick usage::

    from stackforge import Config, ResourceDescriptor, Workbench

    bench = Workbench(Config(project_root=Path("./blog-api")))
    await bench.initialize_project("blog-api")
    await bench.add_model(ResourceDescriptor(name="post", fields=[...]))
    await bench.add_route("post", ["list", "getById", "create"])
    report = bench.review()
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Optional

from pydantic import BaseModel, Field

from ..config import Config
from ..planner.executor import ExecutionReport, PlanExecutor
from ..planner.handlers import ExecutionContext, HandlerRegistry
from ..planner.models import DomainCatalog, TaskGraph
from ..planner.router import SpecialistRouter, build_plan
from ..reviewer.aggregator import aggregate, print_report
from ..reviewer.models import ReviewReport
from ..utils import (
    print_error,
    print_header,
    print_success,
    print_summary_table,
    print_warning,
    save_json,
    write_text,
)
from .composer import FileSetComposer
from .expander import TemplateExpander
from .hooks import HookResult, TypeCheckHook
from .models import (
    ALL_CAPABILITIES,
    AggregatorIndex,
    Capability,
    FileArtifact,
    MiddlewareKind,
    ProjectTree,
    ResourceDescriptor,
)
from .naming import forms, validate_identifier


class OperationResult(BaseModel):
    """What one workbench operation produced."""
    operation: str = Field(..., description="Operation name, e.g. 'add-route'")
    artifacts: list[FileArtifact] = Field(default_factory=list)
    written: list[str] = Field(default_factory=list, description="Paths whose content changed")
    skipped: list[str] = Field(
        default_factory=list, description="Entry keys or paths that were already present"
    )
    hook_results: list[HookResult] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list, description="Suggested follow-up operations")

    @property
    def type_check_passed(self) -> bool:
        return all(result.passed for result in self.hook_results)


class Workbench:
    """Developer-facing operations over one project directory."""

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        catalog: Optional[DomainCatalog] = None,
        registry: Optional[HandlerRegistry] = None,
        expander: Optional[TemplateExpander] = None,
        persist: bool = True,
        verbose: bool = False,
    ) -> None:
        self.config = config or Config()
        self.persist = persist
        self.verbose = verbose
        self.expander = expander or TemplateExpander(self.config)

        if catalog is None:
            catalog = (
                DomainCatalog.load(self.config.catalog_file)
                if self.config.catalog_file
                else DomainCatalog.default()
            )
        self.catalog = catalog
        self.registry = registry or HandlerRegistry.default(self.catalog)
        self.router = SpecialistRouter(self.registry)
        self.descriptors: dict[str, ResourceDescriptor] = {}

        root = self.config.project_root
        self.composer = FileSetComposer(
            ProjectTree.load(root) if persist else ProjectTree(),
            AggregatorIndex.load(self.config.index_path) if persist else AggregatorIndex(),
            writer=self._write if persist else None,
            post_write=TypeCheckHook(root, self.config.type_check) if persist else None,
        )

    @property
    def tree(self) -> ProjectTree:
        return self.composer.tree

    @property
    def index(self) -> AggregatorIndex:
        return self.composer.index

    # -- Operations --------------------------------------------------------

    async def initialize_project(self, name: str) -> OperationResult:
        """Write the base project tree.

        Re-initialising resets the aggregator index, since the registrar and
        schema are rewritten from their empty skeletons.
        """
        validate_identifier(name)
        if self.persist:
            await asyncio.to_thread(self.config.ensure_directories)
        self.composer.index = AggregatorIndex()
        if self.verbose:
            print_header(f"Initialising {name}")
            print_summary_table(
                {"Project": name, "Root": str(self.config.project_root), "API prefix": self.config.api_prefix},
                title="Project",
            )
        return await self._apply(
            "initialize-project",
            self.expander.expand_base(name),
            suggestions=["add_model(ResourceDescriptor(...)) to define the first resource"],
        )

    async def add_model(self, descriptor: ResourceDescriptor) -> OperationResult:
        """Add the Prisma model for *descriptor* and offer to scaffold its routes."""
        self.descriptors[descriptor.name] = descriptor
        caps = ", ".join(f"'{cap.value}'" for cap in ALL_CAPABILITIES)
        return await self._apply(
            "add-model",
            self.expander.expand_model(descriptor),
            suggestions=[
                f"add_route('{descriptor.name}', [{caps}]) to scaffold /{descriptor.naming.kebab_plural}",
            ],
        )

    async def add_route(
        self,
        resource: str | ResourceDescriptor,
        capabilities: Iterable[Capability | str] = ALL_CAPABILITIES,
    ) -> OperationResult:
        """Scaffold validator, service, controller and route artifacts."""
        descriptor = self._descriptor(resource)
        return await self._apply("add-route", self.expander.expand(descriptor, capabilities))

    async def add_middleware(
        self,
        kind: MiddlewareKind | str,
        name: Optional[str] = None,
    ) -> OperationResult:
        return await self._apply("add-middleware", self.expander.expand_middleware(kind, name))

    async def add_service(self, name: str, operations: Iterable[str]) -> OperationResult:
        return await self._apply("add-service", self.expander.expand_service(name, operations))

    def review(self, scope: str = "") -> ReviewReport:
        """Run every reviewing handler and aggregate their findings.

        Checks see the whole tree; only findings located under *scope* are
        reported.
        """
        in_scope = set(self.tree.paths(scope))
        finding_sets = [
            [finding for finding in handler.review(self.tree) if finding.location.file in in_scope]
            for handler in self.registry.reviewers()
        ]
        report = aggregate(finding_sets)
        if self.verbose:
            print_report(report)
            if not report.passed:
                print_error("Review found high-severity issues")
        return report

    def plan(self, request: str) -> TaskGraph:
        """Decompose and route *request* without executing it."""
        return build_plan(request, self.catalog, self.router)

    async def implement(
        self,
        request: str,
        descriptors: Iterable[ResourceDescriptor] = (),
    ) -> ExecutionReport:
        """Plan *request* and execute it through the domain handlers.

        Descriptors supply fields and relations for the resources the
        request introduces; resources without one are scaffolded bare.
        """
        for descriptor in descriptors:
            self.descriptors[descriptor.name] = descriptor
        graph = self.plan(request)
        executor = PlanExecutor(
            self.registry,
            self.composer,
            ExecutionContext(expander=self.expander, descriptors=self.descriptors),
        )
        report = await executor.run(graph)
        if self.persist:
            await self._save_index()
        if self.verbose:
            report.print_summary()
        return report

    # -- Internals ---------------------------------------------------------

    def _descriptor(self, resource: str | ResourceDescriptor) -> ResourceDescriptor:
        if isinstance(resource, ResourceDescriptor):
            self.descriptors[resource.name] = resource
            return resource
        name = forms(resource).singular
        return self.descriptors.get(name) or ResourceDescriptor(name=name)

    async def _apply(
        self,
        operation: str,
        artifacts: list[FileArtifact],
        suggestions: Optional[list[str]] = None,
    ) -> OperationResult:
        outcome = await self.composer.apply(artifacts, owner=operation)
        if self.persist:
            await self._save_index()

        result = OperationResult(
            operation=operation,
            artifacts=artifacts,
            written=outcome.written,
            skipped=[artifact.entry_key or artifact.path for artifact in outcome.skipped],
            hook_results=outcome.hook_results,
            suggestions=suggestions or [],
        )
        if self.verbose:
            print_success(f"{operation}: {len(result.written)} file(s) written, {len(result.skipped)} unchanged")
            for hook in result.hook_results:
                if hook.ran and not hook.passed:
                    print_warning(f"Type check failed after writing {hook.path}")
        return result

    async def _write(self, path: str, content: str) -> None:
        await asyncio.to_thread(write_text, self.config.project_root / path, content)

    async def _save_index(self) -> None:
        await save_json(self.composer.index.model_dump(), self.config.index_path)
