"""stackforge scaffolder -- naming, template expansion and file-set composition.

Takes a ``ResourceDescriptor`` and a capability selection and produces
mutually consistent Prisma, Zod, service, controller and route artifacts
for an Express + TypeScript project, then merges them into the project tree.

Quick usage::

    from stackforge.scaffolder import ResourceDescriptor, TemplateExpander, compose

    artifacts = TemplateExpander().expand(ResourceDescriptor(name="post"), ["list", "create"])
    result = compose(artifacts, ProjectTree(), AggregatorIndex())
"""

from stackforge.scaffolder.composer import (
    ComposeConflict,
    ComposeError,
    ComposeResult,
    FileSetComposer,
    compose,
)
from stackforge.scaffolder.expander import TemplateExpander
from stackforge.scaffolder.hooks import HookResult, TypeCheckHook
from stackforge.scaffolder.models import (
    AggregatorIndex,
    ArtifactKind,
    Capability,
    Cardinality,
    FieldSpec,
    FileArtifact,
    MergeStrategy,
    MiddlewareKind,
    ProjectTree,
    Relation,
    ResourceDescriptor,
)
from stackforge.scaffolder.naming import InvalidNameError, NamingForms, forms
from stackforge.scaffolder.templates import TemplateRenderer
from stackforge.scaffolder.workbench import OperationResult, Workbench

__all__ = [
    "AggregatorIndex",
    "ArtifactKind",
    "Capability",
    "Cardinality",
    "ComposeConflict",
    "ComposeError",
    "ComposeResult",
    "FieldSpec",
    "FileArtifact",
    "FileSetComposer",
    "HookResult",
    "InvalidNameError",
    "MergeStrategy",
    "MiddlewareKind",
    "NamingForms",
    "OperationResult",
    "ProjectTree",
    "Relation",
    "ResourceDescriptor",
    "TemplateExpander",
    "TemplateRenderer",
    "TypeCheckHook",
    "Workbench",
    "compose",
    "forms",
]
