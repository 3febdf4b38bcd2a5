"""Static review checks, one function per specialist domain.

Each check scans a :class:`ProjectTree` with regular expressions and
returns ``ReviewFinding`` objects tagged with its domain.  Checks never
raise on malformed input: text they cannot interpret is simply not
reported on.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import PurePosixPath

from ..scaffolder.expander import REGISTRAR_PATH
from ..scaffolder.models import ProjectTree
from .models import Location, ReviewFinding, Severity

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_MODEL_RE = re.compile(r"^model\s+(\w+)\s*\{(.*?)^\}", re.MULTILINE | re.DOTALL)
_ENUM_RE = re.compile(r"^enum\s+(\w+)\s*\{", re.MULTILINE)
_FIELD_RE = re.compile(r"^\s*(\w+)\s+(\w+)(\[\])?\??(.*)$")

_PRISMA_SCALARS = frozenset({
    "String", "Int", "Float", "Decimal", "Boolean", "DateTime", "Json", "BigInt", "Bytes",
})

_REGISTRAR_IMPORT_RE = re.compile(r"^import\s+(\w+)\s+from\s+'\./([\w.-]+)';?", re.MULTILINE)
_SERVICE_CALL_RE = re.compile(r"\b(\w+Service)\.(\w+)\(")
_SERVICE_EXPORT_RE = re.compile(r"export\s+const\s+(\w+Service)\s*=")
_METHOD_RE = re.compile(r"^\s*(?:async\s+)?(\w+)\s*\([^)]*\)\s*(?::[^{]+)?\{", re.MULTILINE)
_ASYNC_HANDLER_RE = re.compile(r"async\s*(?:\w+\s*)?\(([^)]*)\)")

_ANY_RE = re.compile(r":\s*any\b|\bas\s+any\b|<any>|\bany\[\]")
_INTERFACE_RE = r"export\s+(?:interface|type)\s+{name}\b"

_MUTATING_ROUTE_RE = re.compile(r"router\.(post|put|patch|delete)\(")
_AUTH_NAME_RE = re.compile(r"\b(requireAuth|authenticate\w*|auth\w*Middleware|isAuthenticated)\b")
_SECRET_RE = re.compile(
    r"\b\w*(secret|password|passwd|api[_-]?key|token)\w*\s*[:=]\s*['\"`][^'\"`\s]{6,}['\"`]",
    re.IGNORECASE,
)
_CONSOLE_LOG_RE = re.compile(r"\bconsole\.log\(")

_SOURCE_SUFFIXES = frozenset({".ts", ".tsx", ".js", ".mjs", ".cjs"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _line_of(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def _finding(domain: str, severity: Severity, message: str, file: str, line: int | None = None) -> ReviewFinding:
    return ReviewFinding(
        domain=domain, severity=severity, message=message, location=Location(file=file, line=line)
    )


def _sources(tree: ProjectTree) -> Iterator[tuple[str, str]]:
    for path in tree.paths():
        if PurePosixPath(path).suffix in _SOURCE_SUFFIXES:
            yield path, tree.files[path]


def _models(tree: ProjectTree) -> list[tuple[str, str, str, int]]:
    """``(path, name, body, line)`` for every Prisma model in the tree."""
    found: list[tuple[str, str, str, int]] = []
    for path in tree.paths():
        if not path.endswith(".prisma"):
            continue
        content = tree.files[path]
        for match in _MODEL_RE.finditer(content):
            found.append((path, match.group(1), match.group(2), _line_of(content, match.start())))
    return found


# ---------------------------------------------------------------------------
# Domain checks
# ---------------------------------------------------------------------------

def schema_findings(tree: ProjectTree) -> list[ReviewFinding]:
    """Prisma schema checks: ids, relation targets, duplicates, timestamps."""
    models = _models(tree)
    enums = {
        match.group(1)
        for path in tree.paths() if path.endswith(".prisma")
        for match in _ENUM_RE.finditer(tree.files[path])
    }
    defined = {name for _, name, _, _ in models} | enums

    findings: list[ReviewFinding] = []
    seen: set[str] = set()
    for path, name, body, line in models:
        if name in seen:
            findings.append(_finding("schema", Severity.HIGH, f"Duplicate model {name}", path, line))
        seen.add(name)

        if "@id" not in body and "@@id" not in body:
            findings.append(_finding("schema", Severity.HIGH, f"Model {name} has no @id field", path, line))

        field_names: set[str] = set()
        for offset, raw in enumerate(body.splitlines()):
            match = _FIELD_RE.match(raw)
            if not match or raw.strip().startswith(("//", "@@")):
                continue
            field_name, field_type = match.group(1), match.group(2)
            field_names.add(field_name)
            if field_type in _PRISMA_SCALARS or field_type in defined:
                continue
            findings.append(_finding(
                "schema",
                Severity.HIGH,
                f"Field {name}.{field_name} references undefined model {field_type}",
                path,
                line + offset,
            ))

        if not {"createdAt", "updatedAt"} <= field_names:
            findings.append(_finding(
                "schema", Severity.LOW, f"Model {name} has no createdAt/updatedAt timestamps", path, line
            ))
    return findings


def api_findings(tree: ProjectTree) -> list[ReviewFinding]:
    """Routing and layering checks: registrar wiring, service calls, error forwarding."""
    findings: list[ReviewFinding] = []
    registrar = tree.get(REGISTRAR_PATH)
    routes_dir = str(PurePosixPath(REGISTRAR_PATH).parent)

    if registrar is not None:
        for match in _REGISTRAR_IMPORT_RE.finditer(registrar):
            module = match.group(2)
            if not any(tree.exists(f"{routes_dir}/{module}{suffix}") for suffix in (".ts", ".js", "/index.ts")):
                findings.append(_finding(
                    "api",
                    Severity.HIGH,
                    f"Registrar imports missing router ./{module}",
                    REGISTRAR_PATH,
                    _line_of(registrar, match.start()),
                ))

    for path in tree.paths(routes_dir):
        if not path.endswith(".routes.ts"):
            continue
        module = PurePosixPath(path).name[: -len(".ts")]
        if registrar is None or f"'./{module}'" not in registrar:
            findings.append(_finding(
                "api", Severity.MED, f"Router {module} is not registered in {REGISTRAR_PATH}", path
            ))

    services: dict[str, set[str]] = {}
    for path, content in _sources(tree):
        for match in _SERVICE_EXPORT_RE.finditer(content):
            body = content[match.end():]
            services[match.group(1)] = {m.group(1) for m in _METHOD_RE.finditer(body)}

    for path, content in _sources(tree):
        is_controller = path.endswith(".controller.ts")
        if is_controller:
            for match in _SERVICE_CALL_RE.finditer(content):
                service, method = match.group(1), match.group(2)
                if method in services.get(service, set()):
                    continue
                findings.append(_finding(
                    "api",
                    Severity.HIGH,
                    f"Call to undefined service method {service}.{method}",
                    path,
                    _line_of(content, match.start()),
                ))
        if is_controller or path.endswith(".routes.ts"):
            for match in _ASYNC_HANDLER_RE.finditer(content):
                params = match.group(1)
                if "req" in params and "next" not in params:
                    findings.append(_finding(
                        "api",
                        Severity.MED,
                        "Async handler does not forward errors to next()",
                        path,
                        _line_of(content, match.start()),
                    ))
    return findings


def types_findings(tree: ProjectTree) -> list[ReviewFinding]:
    """TypeScript typing checks: ``any`` usage and models without interfaces."""
    findings: list[ReviewFinding] = []
    for path, content in _sources(tree):
        for number, line in enumerate(content.splitlines(), start=1):
            if _ANY_RE.search(line):
                findings.append(_finding(
                    "types", Severity.LOW, "Use of 'any' weakens type checking", path, number
                ))

    type_sources = [content for path, content in _sources(tree) if path.startswith("src/types/")]
    for path, name, _, line in _models(tree):
        pattern = re.compile(_INTERFACE_RE.format(name=re.escape(name)))
        if not any(pattern.search(content) for content in type_sources):
            findings.append(_finding(
                "types", Severity.LOW, f"Model {name} has no exported TypeScript interface", path, line
            ))
    return findings


def middleware_findings(tree: ProjectTree) -> list[ReviewFinding]:
    """Middleware and hygiene checks: unauthenticated writes, secrets, debug logging."""
    findings: list[ReviewFinding] = []
    for path, content in _sources(tree):
        lines = content.splitlines()
        guarded_file = any(
            "router.use(" in line and _AUTH_NAME_RE.search(line) for line in lines
        )
        for number, line in enumerate(lines, start=1):
            route = _MUTATING_ROUTE_RE.search(line)
            if route and path.endswith(".routes.ts") and not guarded_file and not _AUTH_NAME_RE.search(line):
                findings.append(_finding(
                    "middleware",
                    Severity.MED,
                    f"{route.group(1).upper()} route has no authentication middleware",
                    path,
                    number,
                ))
            if _SECRET_RE.search(line):
                findings.append(_finding(
                    "middleware", Severity.HIGH, "Hard-coded secret in source", path, number
                ))
            if _CONSOLE_LOG_RE.search(line):
                findings.append(_finding(
                    "middleware", Severity.LOW, "Leftover console.log statement", path, number
                ))
    return findings
