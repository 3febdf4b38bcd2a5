"""stackforge planner -- feature-request decomposition, routing and execution."""

from stackforge.planner.decomposer import TaskDecomposer, decompose
from stackforge.planner.executor import ExecutionReport, PlanExecutor
from stackforge.planner.handlers import (
    ExecutionContext,
    HandlerRegistry,
    TaskResult,
)
from stackforge.planner.models import (
    CyclicPlanError,
    DomainCatalog,
    DomainSpec,
    TaskGraph,
    TaskNode,
)
from stackforge.planner.router import RouteDecision, SpecialistRouter, build_plan

__all__ = [
    "CyclicPlanError",
    "DomainCatalog",
    "DomainSpec",
    "ExecutionContext",
    "ExecutionReport",
    "HandlerRegistry",
    "PlanExecutor",
    "RouteDecision",
    "SpecialistRouter",
    "TaskDecomposer",
    "TaskGraph",
    "TaskNode",
    "TaskResult",
    "build_plan",
    "decompose",
]
