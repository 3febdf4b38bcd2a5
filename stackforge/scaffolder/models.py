"""Pydantic v2 models for the stackforge scaffolder.

Defines resource descriptors (the abstract input), generated file artifacts
(the output of template expansion), the in-memory project tree and the
persistent aggregator index the composer merges into, and the enumerations
shared between the expander and the composer.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils import load_json
from .naming import NamingForms, camel_case, forms, validate_identifier


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Capability(str, Enum):
    """One CRUD-style operation selectable per resource."""
    LIST = "list"
    GET_BY_ID = "getById"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Cardinality(str, Enum):
    """Relation cardinality, read from the owning resource's side."""
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"


class ArtifactKind(str, Enum):
    """Classification of a generated file artifact."""
    ROUTE = "route"
    CONTROLLER = "controller"
    SERVICE = "service"
    SCHEMA_FRAGMENT = "schema-fragment"
    ERROR_TYPE = "error-type"
    MIDDLEWARE = "middleware"
    TYPE_DEFINITION = "type-definition"
    CONFIG = "config"


class MergeStrategy(str, Enum):
    """How the composer merges an artifact into the project tree."""
    REPLACE_WHOLE_FILE = "replace-whole-file"
    IDEMPOTENT_INSERT = "idempotent-insert-into-aggregator"


class MiddlewareKind(str, Enum):
    """Middleware flavours the expander can scaffold."""
    AUTH = "auth"
    VALIDATE = "validate"
    RATE_LIMIT = "rateLimit"
    LOGGING = "logging"
    CUSTOM = "custom"


ALL_CAPABILITIES: tuple[Capability, ...] = tuple(Capability)


# ---------------------------------------------------------------------------
# Semantic field types
# ---------------------------------------------------------------------------

# Maps accepted spellings to the canonical Prisma scalar type.
SEMANTIC_TYPES: dict[str, str] = {
    "string": "String",
    "str": "String",
    "text": "String",
    "email": "String",
    "url": "String",
    "int": "Int",
    "integer": "Int",
    "float": "Float",
    "number": "Float",
    "double": "Float",
    "decimal": "Decimal",
    "money": "Decimal",
    "bool": "Boolean",
    "boolean": "Boolean",
    "datetime": "DateTime",
    "date": "DateTime",
    "timestamp": "DateTime",
    "json": "Json",
    "object": "Json",
    "dict": "Json",
    "bigint": "BigInt",
}


def entry_marker(entry_key: str) -> str:
    """Return the comment line that identifies an inserted aggregator entry."""
    return f"// @forge {entry_key}"


# ---------------------------------------------------------------------------
# Resource descriptor
# ---------------------------------------------------------------------------

class FieldSpec(BaseModel):
    """A single persisted field of a resource."""
    name: str = Field(..., description="Field name, normalised to camelCase")
    semantic_type: str = Field(..., description="Canonical Prisma scalar, e.g. 'String'")
    nullable: bool = Field(default=False, description="Whether the field may be null")
    unique: bool = Field(default=False, description="Whether values must be unique")

    @field_validator("name")
    @classmethod
    def _normalise_name(cls, value: str) -> str:
        # Field names are case-normalised but never singularised ("tags" stays "tags").
        return camel_case(validate_identifier(value))

    @field_validator("semantic_type")
    @classmethod
    def _canonical_type(cls, value: str) -> str:
        canonical = SEMANTIC_TYPES.get(value.strip().lower())
        if canonical is None:
            raise ValueError(f"Unsupported semantic type: {value!r}")
        return canonical


class Relation(BaseModel):
    """A relation from the described resource to another resource."""
    target: str = Field(..., description="Target resource name")
    cardinality: Cardinality = Field(..., description="Relation cardinality")

    @field_validator("target")
    @classmethod
    def _canonical_target(cls, value: str) -> str:
        return forms(value).singular

    @property
    def holds_foreign_key(self) -> bool:
        """True when the described resource stores the target's id."""
        return self.cardinality in (Cardinality.MANY_TO_ONE, Cardinality.ONE_TO_ONE)


class ResourceDescriptor(BaseModel):
    """Abstract description of a data resource to scaffold."""
    name: str = Field(..., description="Canonical singular resource identifier")
    fields: list[FieldSpec] = Field(default_factory=list, description="Ordered fields")
    relations: list[Relation] = Field(default_factory=list, description="Relations")

    @field_validator("name")
    @classmethod
    def _canonical_name(cls, value: str) -> str:
        return forms(value).singular

    @model_validator(mode="after")
    def _unique_fields(self) -> "ResourceDescriptor":
        seen: set[str] = set()
        for spec in self.fields:
            if spec.name in seen:
                raise ValueError(f"Duplicate field {spec.name!r} on {self.name!r}")
            seen.add(spec.name)
        return self

    @property
    def naming(self) -> NamingForms:
        return forms(self.name)


# ---------------------------------------------------------------------------
# File artifacts
# ---------------------------------------------------------------------------

class FileArtifact(BaseModel):
    """A generated unit of source content with a target path and merge strategy."""
    path: str = Field(..., description="Project-relative POSIX path")
    kind: ArtifactKind = Field(..., description="Artifact classification")
    content: str = Field(..., description="Template-resolved text")
    merge_strategy: MergeStrategy = Field(
        default=MergeStrategy.REPLACE_WHOLE_FILE, description="How to merge into the tree"
    )
    group: str = Field(default="", description="Capability, relation or operation that emitted it")
    resource: Optional[str] = Field(default=None, description="Owning resource name")
    entry_key: Optional[str] = Field(
        default=None, description="Identity of an inserted aggregator entry"
    )
    anchor: Optional[str] = Field(
        default=None, description="Marker line the entry is inserted before"
    )
    skeleton: Optional[str] = Field(
        default=None, description="Initial aggregator content when the file is missing"
    )

    @model_validator(mode="after")
    def _insert_fields(self) -> "FileArtifact":
        if self.merge_strategy is MergeStrategy.IDEMPOTENT_INSERT:
            missing = [
                name for name in ("resource", "entry_key", "anchor")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"Insert artifact for {self.path} is missing: {', '.join(missing)}"
                )
        return self


# ---------------------------------------------------------------------------
# Project state
# ---------------------------------------------------------------------------

# Directories never read into a ProjectTree.
_SKIP_DIRS: frozenset[str] = frozenset({"node_modules", ".git", "dist", "build", ".stackforge"})


class ProjectTree(BaseModel):
    """In-memory view of a project: path to content plus the kind that wrote it."""
    files: dict[str, str] = Field(default_factory=dict, description="POSIX path -> content")
    kinds: dict[str, ArtifactKind] = Field(
        default_factory=dict, description="Kind of the artifact that last wrote each path"
    )

    def exists(self, path: str) -> bool:
        return path in self.files

    def get(self, path: str, default: Optional[str] = None) -> Optional[str]:
        return self.files.get(path, default)

    def paths(self, prefix: str = "") -> list[str]:
        """Return sorted paths, optionally restricted to those under *prefix*."""
        prefix = prefix.strip("/")
        return sorted(
            path for path in self.files
            if not prefix or path == prefix or path.startswith(prefix + "/")
        )

    @classmethod
    def load(cls, root: Path) -> "ProjectTree":
        """Read every UTF-8 text file below *root*.

        Dependency, build and VCS directories are skipped, as are files that
        are not valid UTF-8.  Kinds are unknown for files read from disk.
        """
        root = Path(root)
        files: dict[str, str] = {}
        if not root.is_dir():
            return cls()
        for path in sorted(root.rglob("*")):
            rel = path.relative_to(root)
            if any(part in _SKIP_DIRS for part in rel.parts) or not path.is_file():
                continue
            try:
                files[rel.as_posix()] = path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                continue
        return cls(files=files)


class AggregatorIndex(BaseModel):
    """Persistent record of entries inserted into aggregator files.

    Maps resource name to ``{entry key: aggregator path}``.
    """
    entries: dict[str, dict[str, str]] = Field(default_factory=dict)

    def has(self, resource: str, entry_key: str) -> bool:
        return entry_key in self.entries.get(resource, {})

    def record(self, resource: str, entry_key: str, path: str) -> None:
        self.entries.setdefault(resource, {})[entry_key] = path

    def for_resource(self, resource: str) -> dict[str, str]:
        return dict(self.entries.get(resource, {}))

    @classmethod
    def load(cls, path: Path) -> "AggregatorIndex":
        """Load an index from JSON, returning an empty index if *path* is missing."""
        path = Path(path)
        if not path.exists():
            return cls()
        return cls.model_validate(load_json(path))
