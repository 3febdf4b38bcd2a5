"""stackforge: deterministic scaffolding and task planning for three-layer web APIs.

Quick usage::

    from pathlib import Path
    from stackforge import Config, ResourceDescriptor, Workbench

    bench = Workbench(Config(project_root=Path("./blog-api")))
    await bench.initialize_project("blog-api")
    await bench.implement("add posts", [ResourceDescriptor(name="post", fields=[...])])
"""

from stackforge.config import Config, TypeCheckConfig
from stackforge.scaffolder import (
    Capability,
    Cardinality,
    FieldSpec,
    FileArtifact,
    OperationResult,
    Relation,
    ResourceDescriptor,
    Workbench,
)

__version__ = "0.1.0"

__all__ = [
    "Capability",
    "Cardinality",
    "Config",
    "FieldSpec",
    "FileArtifact",
    "OperationResult",
    "Relation",
    "ResourceDescriptor",
    "TypeCheckConfig",
    "Workbench",
    "__version__",
]
