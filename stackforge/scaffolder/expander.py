"""Template expansion: resource descriptors to file artifacts.

``TemplateExpander`` turns a :class:`ResourceDescriptor` plus a capability
selection into an ordered sequence of :class:`FileArtifact` objects.  Every
artifact for one resource is rendered from the same :class:`NamingForms`
instance, so the validator, service, controller and route files always agree
on identifiers and paths.

Emission order per capability is validator schema, service method,
controller handler, route line.  The first capability group is prefixed by
the Prisma model and suffixed by the registrar registration, so composing
any prefix of the sequence never references an undefined symbol.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Optional

from ..config import Config
from .models import (
    ArtifactKind,
    Capability,
    Cardinality,
    FileArtifact,
    MergeStrategy,
    MiddlewareKind,
    Relation,
    ResourceDescriptor,
    entry_marker,
)
from .naming import NamingForms, camel_case, forms, kebab_case, validate_identifier
from .templates import TemplateRenderer


# ---------------------------------------------------------------------------
# Layout constants
# ---------------------------------------------------------------------------

ANCHORS: dict[str, str] = {
    "models": "// @forge:models",
    "registrations": "// @forge:registrations",
    "schemas": "// @forge:schemas",
    "methods": "// @forge:methods",
    "handlers": "// @forge:handlers",
    "routes": "// @forge:routes",
    "includes": "// @forge:includes",
}

SCHEMA_PATH = "prisma/schema.prisma"
REGISTRAR_PATH = "src/routes/index.ts"
ERRORS_PATH = "src/errors/index.ts"

_BASE_KINDS: dict[str, ArtifactKind] = {
    SCHEMA_PATH: ArtifactKind.SCHEMA_FRAGMENT,
    REGISTRAR_PATH: ArtifactKind.ROUTE,
    "src/middleware/error-handler.ts": ArtifactKind.MIDDLEWARE,
}

# Template outputs whose on-disk name differs from the template name.
_BASE_RENAMES: dict[str, str] = {"env.example": ".env.example"}

_TS_TYPES: dict[str, str] = {
    "String": "string",
    "Int": "number",
    "Float": "number",
    "Decimal": "number",
    "Boolean": "boolean",
    "DateTime": "Date",
    "Json": "unknown",
    "BigInt": "bigint",
}

_ZOD_TYPES: dict[str, str] = {
    "String": "z.string()",
    "Int": "z.number().int()",
    "Float": "z.number()",
    "Decimal": "z.coerce.number()",
    "Boolean": "z.boolean()",
    "DateTime": "z.coerce.date()",
    "Json": "z.any()",
    "BigInt": "z.coerce.bigint()",
}

_MIDDLEWARE_NAMES: dict[MiddlewareKind, str] = {
    MiddlewareKind.AUTH: "requireAuth",
    MiddlewareKind.VALIDATE: "validateRequest",
    MiddlewareKind.RATE_LIMIT: "rateLimit",
    MiddlewareKind.LOGGING: "requestLogger",
    MiddlewareKind.CUSTOM: "customMiddleware",
}

# Middleware templates that import from src/errors.
_MIDDLEWARE_NEEDS_ERRORS = frozenset({MiddlewareKind.AUTH, MiddlewareKind.RATE_LIMIT})


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

def validator_path(naming: NamingForms) -> str:
    return f"src/validators/{naming.kebab}.validator.ts"


def service_path(naming: NamingForms) -> str:
    return f"src/services/{naming.kebab}.service.ts"


def controller_path(naming: NamingForms) -> str:
    return f"src/controllers/{naming.kebab}.controller.ts"


def routes_path(naming: NamingForms) -> str:
    return f"src/routes/{naming.kebab}.routes.ts"


def types_path(naming: NamingForms) -> str:
    return f"src/types/{naming.kebab}.types.ts"


def normalize_capabilities(capabilities: Iterable[Capability | str]) -> list[Capability]:
    """Coerce and de-duplicate *capabilities*, keeping the first occurrence.

    Unordered collections (sets) are placed in declaration order so that the
    result never depends on hash ordering.

    Raises:
        ValueError: If the selection is empty or names an unknown capability.
    """
    unordered = isinstance(capabilities, (set, frozenset))
    result: list[Capability] = []
    for cap in capabilities:
        value = Capability(cap)
        if value not in result:
            result.append(value)
    if not result:
        raise ValueError("At least one capability is required")
    if unordered:
        result.sort(key=list(Capability).index)
    return result


# ---------------------------------------------------------------------------
# TemplateExpander
# ---------------------------------------------------------------------------


class TemplateExpander:
    """Expands descriptors and operations into ordered file artifacts.

    The expander is deterministic and side-effect free: it renders text and
    never touches the file system.  Identical input yields a byte-identical
    artifact sequence.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        renderer: Optional[TemplateRenderer] = None,
    ) -> None:
        self.config = config or Config()
        self.renderer = renderer or TemplateRenderer()

    # ------------------------------------------------------------------
    # Resource expansion
    # ------------------------------------------------------------------

    def expand(
        self,
        descriptor: ResourceDescriptor,
        capabilities: Iterable[Capability | str],
    ) -> list[FileArtifact]:
        """Emit every artifact the requested capabilities need.

        Args:
            descriptor: The resource to scaffold.
            capabilities: Capability selection; duplicates are dropped.

        Returns:
            Capability groups in request order, followed by one artifact per
            relation.

        Raises:
            ValueError: If *capabilities* is empty.
        """
        selected = normalize_capabilities(capabilities)
        ctx = self._resource_context(descriptor)

        artifacts: list[FileArtifact] = []
        for position, capability in enumerate(selected):
            if position == 0:
                artifacts.append(self._model_artifact(ctx, capability.value))
            artifacts.extend(self._capability_group(ctx, capability))
            if position == 0:
                artifacts.append(self._registration_artifact(ctx, capability.value))

        for relation in descriptor.relations:
            artifacts.append(self._relation_artifact(ctx, relation))
        return artifacts

    def expand_model(self, descriptor: ResourceDescriptor) -> list[FileArtifact]:
        """Emit only the Prisma model fragment for *descriptor*."""
        return [self._model_artifact(self._resource_context(descriptor), "model")]

    def expand_types(self, descriptor: ResourceDescriptor) -> list[FileArtifact]:
        """Emit the TypeScript interface and input types for *descriptor*."""
        ctx = self._resource_context(descriptor)
        naming: NamingForms = ctx["f"]
        return [
            FileArtifact(
                path=types_path(naming),
                kind=ArtifactKind.TYPE_DEFINITION,
                content=self.renderer.render("resource/types.ts.j2", ctx),
                group="types",
                resource=naming.singular,
            )
        ]

    # ------------------------------------------------------------------
    # Project-level expansion
    # ------------------------------------------------------------------

    def expand_base(self, project_name: str) -> list[FileArtifact]:
        """Emit the base project tree for a new project called *project_name*."""
        ctx = self._project_context(project_name)
        artifacts: list[FileArtifact] = []
        for rel_path, content in self.renderer.render_tree("base", ctx):
            path = _BASE_RENAMES.get(rel_path, rel_path)
            artifacts.append(
                FileArtifact(
                    path=path,
                    kind=_BASE_KINDS.get(path, ArtifactKind.CONFIG),
                    content=content,
                    group="base",
                )
            )
        artifacts.extend(self.expand_errors())
        return artifacts

    def expand_errors(self) -> list[FileArtifact]:
        """Emit the generated project's error taxonomy."""
        return [
            FileArtifact(
                path=ERRORS_PATH,
                kind=ArtifactKind.ERROR_TYPE,
                content=self.renderer.render("errors/index.ts.j2", {}),
                group="errors",
            )
        ]

    def expand_middleware(
        self,
        kind: MiddlewareKind | str,
        name: Optional[str] = None,
    ) -> list[FileArtifact]:
        """Emit a middleware module of the given *kind*.

        Raises:
            ValueError: If *kind* is not a known middleware kind.
            InvalidNameError: If *name* is not identifier-safe.
        """
        try:
            middleware_kind = MiddlewareKind(kind)
        except ValueError:
            known = ", ".join(k.value for k in MiddlewareKind)
            raise ValueError(f"Unknown middleware kind {kind!r} (expected one of: {known})") from None

        raw_name = validate_identifier(name) if name else _MIDDLEWARE_NAMES[middleware_kind]
        ctx = {
            "name": raw_name,
            "window_ms": self.config.rate_limit.window_ms,
            "max_requests": self.config.rate_limit.max_requests,
        }

        artifacts: list[FileArtifact] = []
        if middleware_kind in _MIDDLEWARE_NEEDS_ERRORS:
            artifacts.extend(self.expand_errors())
        artifacts.append(
            FileArtifact(
                path=f"src/middleware/{kebab_case(raw_name)}.ts",
                kind=ArtifactKind.MIDDLEWARE,
                content=self.renderer.render(f"middleware/{middleware_kind.value}.ts.j2", ctx),
                group=middleware_kind.value,
            )
        )
        return artifacts

    def expand_service(self, name: str, operations: Iterable[str]) -> list[FileArtifact]:
        """Emit a standalone service with stub *operations* plus the error types.

        Raises:
            ValueError: If *operations* is empty.
            InvalidNameError: If *name* or an operation is not identifier-safe.
        """
        naming = forms(name)
        # Keyed by method name, so "get_all" and "getAll" are one operation.
        methods: dict[str, str] = {}
        for op in operations:
            methods.setdefault(camel_case(validate_identifier(op)), op)
        ops = list(methods.values())
        if not ops:
            raise ValueError(f"Service {name!r} needs at least one operation")

        return [
            *self.expand_errors(),
            FileArtifact(
                path=service_path(naming),
                kind=ArtifactKind.SERVICE,
                content=self.renderer.render(
                    "service/service.ts.j2", {"f": naming, "operations": ops}
                ),
                group="service",
                resource=naming.singular,
            ),
        ]

    # ------------------------------------------------------------------
    # Contexts
    # ------------------------------------------------------------------

    def _project_context(self, project_name: str) -> dict[str, Any]:
        return {
            "project": {"name": validate_identifier(project_name)},
            "api_prefix": self.config.api_prefix,
            "port": self.config.port,
            "database_provider": self.config.database_provider,
            "database_url": self.config.database_url,
            "anchors": ANCHORS,
        }

    def _resource_context(self, descriptor: ResourceDescriptor) -> dict[str, Any]:
        naming = descriptor.naming
        fields = [
            {
                "name": spec.name,
                "prisma_type": spec.semantic_type,
                "ts_type": _TS_TYPES[spec.semantic_type],
                "zod": _ZOD_TYPES[spec.semantic_type],
                "nullable": spec.nullable,
                "unique": spec.unique,
            }
            for spec in descriptor.fields
        ]

        fk_relations: list[dict[str, Any]] = []
        list_relations: list[dict[str, Any]] = []
        for relation in descriptor.relations:
            target = forms(relation.target)
            if relation.holds_foreign_key:
                fk_relations.append({
                    "target": target,
                    "field": target.camel,
                    "fk": f"{target.camel}Id",
                    "unique": relation.cardinality is Cardinality.ONE_TO_ONE,
                })
            else:
                list_relations.append({"target": target, "field": target.camel_plural})

        return {
            "f": naming,
            "fields": fields,
            "fk_relations": fk_relations,
            "list_relations": list_relations,
            "anchors": ANCHORS,
            "database_provider": self.config.database_provider,
        }

    # ------------------------------------------------------------------
    # Artifact builders
    # ------------------------------------------------------------------

    def _fragment(
        self,
        ctx: dict[str, Any],
        *,
        template: str,
        skeleton: str,
        path: str,
        kind: ArtifactKind,
        entry_key: str,
        anchor: str,
        group: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> FileArtifact:
        """Render one idempotent-insert fragment and its aggregator skeleton."""
        render_ctx = {**ctx, **(extra or {}), "marker": entry_marker(entry_key)}
        naming: NamingForms = ctx["f"]
        return FileArtifact(
            path=path,
            kind=kind,
            content=self.renderer.render(template, render_ctx),
            merge_strategy=MergeStrategy.IDEMPOTENT_INSERT,
            group=group,
            resource=naming.singular,
            entry_key=entry_key,
            anchor=ANCHORS[anchor],
            skeleton=self.renderer.render(skeleton, ctx),
        )

    def _model_artifact(self, ctx: dict[str, Any], group: str) -> FileArtifact:
        naming: NamingForms = ctx["f"]
        return self._fragment(
            ctx,
            template="resource/model.prisma.j2",
            skeleton="base/prisma/schema.prisma.j2",
            path=SCHEMA_PATH,
            kind=ArtifactKind.SCHEMA_FRAGMENT,
            entry_key=f"{naming.singular}:model",
            anchor="models",
            group=group,
        )

    def _registration_artifact(self, ctx: dict[str, Any], group: str) -> FileArtifact:
        naming: NamingForms = ctx["f"]
        return self._fragment(
            ctx,
            template="resource/routes/register.ts.j2",
            skeleton="base/src/routes/index.ts.j2",
            path=REGISTRAR_PATH,
            kind=ArtifactKind.ROUTE,
            entry_key=f"{naming.singular}:register",
            anchor="registrations",
            group=group,
        )

    def _capability_group(self, ctx: dict[str, Any], capability: Capability) -> list[FileArtifact]:
        naming: NamingForms = ctx["f"]
        name = naming.singular
        cap = capability.value

        validator_templates: list[tuple[str, str]] = []
        if capability is Capability.LIST:
            validator_templates.append(("list", f"{name}:validator:list"))
        if capability in (Capability.GET_BY_ID, Capability.UPDATE, Capability.DELETE):
            validator_templates.append(("id", f"{name}:validator:id"))
        if capability is Capability.CREATE:
            validator_templates.append(("create", f"{name}:validator:create"))
        if capability is Capability.UPDATE:
            validator_templates.append(("update", f"{name}:validator:update"))

        group: list[FileArtifact] = [
            self._fragment(
                ctx,
                template=f"resource/validator/{template}.ts.j2",
                skeleton="resource/validator/_skeleton.ts.j2",
                path=validator_path(naming),
                kind=ArtifactKind.SCHEMA_FRAGMENT,
                entry_key=entry_key,
                anchor="schemas",
                group=cap,
            )
            for template, entry_key in validator_templates
        ]
        group.append(self._fragment(
            ctx,
            template=f"resource/service/{cap}.ts.j2",
            skeleton="resource/service/_skeleton.ts.j2",
            path=service_path(naming),
            kind=ArtifactKind.SERVICE,
            entry_key=f"{name}:service:{cap}",
            anchor="methods",
            group=cap,
        ))
        group.append(self._fragment(
            ctx,
            template=f"resource/controller/{cap}.ts.j2",
            skeleton="resource/controller/_skeleton.ts.j2",
            path=controller_path(naming),
            kind=ArtifactKind.CONTROLLER,
            entry_key=f"{name}:controller:{cap}",
            anchor="handlers",
            group=cap,
        ))
        group.append(self._fragment(
            ctx,
            template=f"resource/routes/{cap}.ts.j2",
            skeleton="resource/routes/_skeleton.ts.j2",
            path=routes_path(naming),
            kind=ArtifactKind.ROUTE,
            entry_key=f"{name}:route:{cap}",
            anchor="routes",
            group=cap,
        ))
        return group

    def _relation_artifact(self, ctx: dict[str, Any], relation: Relation) -> FileArtifact:
        naming: NamingForms = ctx["f"]
        target = forms(relation.target)
        group = f"relation:{target.singular}"

        if relation.holds_foreign_key:
            rel = next(r for r in ctx["fk_relations"] if r["target"] == target)
            return self._fragment(
                ctx,
                template="resource/routes/nested.ts.j2",
                skeleton="resource/routes/_skeleton.ts.j2",
                path=routes_path(naming),
                kind=ArtifactKind.ROUTE,
                entry_key=f"{naming.singular}:nested:{target.singular}",
                anchor="routes",
                group=group,
                extra={"rel": rel},
            )

        rel = next(r for r in ctx["list_relations"] if r["target"] == target)
        return self._fragment(
            ctx,
            template="resource/service/include.ts.j2",
            skeleton="resource/service/_skeleton.ts.j2",
            path=service_path(naming),
            kind=ArtifactKind.SERVICE,
            entry_key=f"{naming.singular}:include:{target.singular}",
            anchor="includes",
            group=group,
            extra={"rel": rel},
        )
