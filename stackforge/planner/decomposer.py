"""Feature-request decomposition.

Turns a free-form request such as ``"add comments, then add rate limiting"``
into a :class:`TaskGraph`.  The request is split into clauses; each clause
either introduces a resource (one task per domain that owns new resources)
or names domain work (one task tagged with the best-matching domain).
Dependency edges come from what each domain provides and requires.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from ..scaffolder.models import Capability
from ..scaffolder.naming import InvalidNameError, NamingForms, forms, kebab_case
from .models import DomainCatalog, DomainSpec, TaskGraph, TaskNode


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

VERBS: frozenset[str] = frozenset({
    "add", "create", "introduce", "build", "implement", "scaffold", "support",
    "generate", "make", "set", "setup",
})

_ARTICLES: frozenset[str] = frozenset({"a", "an", "the", "new", "some", "up"})

# Words that request one capability of a resource's API rather than name it.
CAPABILITY_WORDS: dict[str, Capability] = {
    "list": Capability.LIST,
    "get": Capability.GET_BY_ID,
    "getbyid": Capability.GET_BY_ID,
    "show": Capability.GET_BY_ID,
    "read": Capability.GET_BY_ID,
    "create": Capability.CREATE,
    "update": Capability.UPDATE,
    "edit": Capability.UPDATE,
    "delete": Capability.DELETE,
    "remove": Capability.DELETE,
}

_PREPOSITIONS: frozenset[str] = frozenset({
    "to", "for", "with", "on", "in", "of", "into", "from", "by", "at", "under", "between",
})

_CLAUSE_SPLIT_RE = re.compile(r"\s*(?:[,;.]|\band\b|\bthen\b)\s*", re.IGNORECASE)
_TAG_RE = re.compile(r"\[\s*([A-Za-z][\w-]*)\s*\]")
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z0-9_-]*")


def words(text: str) -> list[str]:
    """Lowercase word tokens of *text*."""
    return [word.lower() for word in _WORD_RE.findall(text)]


def task_words(text: str) -> list[str]:
    """Like :func:`words`, without a leading verb such as "add" or "create"."""
    result = words(text)
    if result and result[0] in VERBS:
        return result[1:]
    return result


def keyword_score(text_words: list[str], vocabulary: list[str] | frozenset[str]) -> float:
    """Number of words in *text_words* that appear in *vocabulary*."""
    vocab = set(vocabulary)
    return float(sum(1 for word in text_words if word in vocab))


# ---------------------------------------------------------------------------
# Clauses
# ---------------------------------------------------------------------------

@dataclass
class Clause:
    """One parsed clause of a feature request."""

    text: str
    verb: Optional[str] = None
    tag: Optional[str] = None
    subject: list[str] = field(default_factory=list)  # noun phrase, original case
    complement: list[str] = field(default_factory=list)  # words after the first preposition
    capability_words: list[str] = field(default_factory=list)

    @property
    def words(self) -> list[str]:
        return words(self.text)

    @property
    def content_words(self) -> list[str]:
        return [word.lower() for word in self.subject + self.complement]

    @property
    def keywords(self) -> list[str]:
        """Words that say what the clause is about: content plus requested capabilities."""
        content = self.content_words
        return content + [word for word in self.capability_words if word not in content]

    @property
    def capabilities(self) -> list[Capability]:
        return list(dict.fromkeys(CAPABILITY_WORDS[word] for word in self.capability_words))

    @property
    def leading_verb(self) -> Optional[str]:
        """The verb when the clause spells it out rather than inheriting it."""
        if self.verb is not None and self.words[:1] == [self.verb]:
            return self.verb
        return None


def split_clauses(request: str) -> list[Clause]:
    """Split *request* into clauses; verbless clauses inherit the previous verb."""
    clauses: list[Clause] = []
    previous_verb: Optional[str] = None
    for part in _CLAUSE_SPLIT_RE.split(request):
        if not part or not part.strip():
            continue
        tag_match = _TAG_RE.search(part)
        tag = tag_match.group(1).lower() if tag_match else None
        text = _TAG_RE.sub(" ", part).strip()
        tokens = _WORD_RE.findall(text)
        if not tokens and tag is None:
            continue

        verb: Optional[str] = None
        if tokens and tokens[0].lower() in VERBS:
            verb = tokens.pop(0).lower()
            previous_verb = verb
        else:
            verb = previous_verb

        while tokens and tokens[0].lower() in _ARTICLES:
            tokens.pop(0)

        subject: list[str] = []
        complement: list[str] = []
        target = subject
        for token in tokens:
            if target is subject and token.lower() in _PREPOSITIONS:
                target = complement
                continue
            if token.lower() not in _ARTICLES:
                target.append(token)

        clause = Clause(text=text, verb=verb, tag=tag, subject=subject, complement=complement)
        clause.capability_words = [word for word in clause.content_words if word in CAPABILITY_WORDS]
        clauses.append(clause)
    return _fold_capability_runs(clauses)


def _capability_only(clause: Clause) -> bool:
    if clause.tag is not None:
        return False
    content = clause.content_words
    if not all(word in CAPABILITY_WORDS for word in content):
        return False
    return bool(content) or clause.leading_verb in CAPABILITY_WORDS


def _fold_capability_runs(clauses: list[Clause]) -> list[Clause]:
    """Merge capability-only clauses into the clause that follows them.

    "add list and create endpoints for posts" splits into "add list" and
    "create endpoints for posts"; both request capabilities of posts.  Inside
    such a run a leading "create" is a capability, not a verb.
    """
    folded: list[Clause] = []
    run: list[Clause] = []
    for clause in clauses:
        if _capability_only(clause):
            run.append(clause)
            continue
        if run:
            requested: list[str] = []
            for member in run + [clause]:
                if member.leading_verb in CAPABILITY_WORDS:
                    requested.append(member.leading_verb)
                requested.extend(member.capability_words)
            clause = Clause(
                text=" and ".join(member.text for member in run + [clause]),
                verb=run[0].verb,
                tag=clause.tag,
                subject=clause.subject,
                complement=clause.complement,
                capability_words=list(dict.fromkeys(requested)),
            )
            run = []
        folded.append(clause)
    return folded + run


# ---------------------------------------------------------------------------
# Decomposer
# ---------------------------------------------------------------------------

class TaskDecomposer:
    """Builds a dependency-respecting task graph from a feature request."""

    def __init__(self, catalog: Optional[DomainCatalog] = None) -> None:
        self.catalog = catalog or DomainCatalog.default()
        self._vocabulary: frozenset[str] = frozenset(
            word for domain in self.catalog.domains for word in domain.vocabulary
        )

    def decompose(self, request: str) -> TaskGraph:
        """Decompose *request* into a validated task graph.

        Raises:
            ValueError: If the request contains no actionable clause.
            CyclicPlanError: If the catalog's provides/requires imply a cycle.
        """
        clauses = split_clauses(request)
        if not clauses:
            raise ValueError("Feature request is empty")

        nodes: list[TaskNode] = []
        taken: set[str] = set()
        for clause in clauses:
            for node in self._tasks_for(clause):
                node.id = _unique_id(node.id, taken)
                taken.add(node.id)
                nodes.append(node)

        graph = TaskGraph(nodes=nodes)
        self._link(graph)
        graph.validate_dag()
        graph.refresh_parallelism()
        return graph

    # -- Clause handling -------------------------------------------------------

    def resource_of(self, clause: Clause) -> Optional[str]:
        """Resource named by *clause*: non-vocabulary subject words, else complement words.

        Capability words ("list", "delete", ...) never name a resource.
        """
        for phrase in (clause.subject, clause.complement):
            nouns = [
                word for word in phrase
                if word.lower() not in self._vocabulary and word.lower() not in CAPABILITY_WORDS
            ]
            if nouns:
                try:
                    return forms("_".join(nouns)).singular
                except InvalidNameError:
                    return None
        return None

    def best_domain(self, clause: Clause) -> Optional[str]:
        """Unique best keyword match for *clause*, or ``None`` on a tie or no match."""
        clause_words = clause.keywords
        scores = {
            domain.name: keyword_score(clause_words, domain.vocabulary)
            for domain in self.catalog.domains
        }
        best = max(scores.values(), default=0.0)
        if best <= 0:
            return None
        winners = [name for name, score in scores.items() if score == best]
        return winners[0] if len(winners) == 1 else None

    def _tasks_for(self, clause: Clause) -> list[TaskNode]:
        resource = self.resource_of(clause)
        naming = forms(resource) if resource else None

        if clause.tag is not None:
            return [self._node(clause, clause.tag, resource, naming)]

        introduces_resource = (
            clause.verb is not None
            and resource is not None
            and not clause.capability_words
            and not any(word in self._vocabulary for word in clause.keywords)
        )
        if introduces_resource:
            return [
                self._node(clause, domain.name, resource, naming)
                for domain in self.catalog.domains
                if domain.on_new_resource
            ]

        return [self._node(clause, self.best_domain(clause), resource, naming)]

    def _node(
        self,
        clause: Clause,
        domain_name: Optional[str],
        resource: Optional[str],
        naming: Optional[NamingForms],
    ) -> TaskNode:
        slug = naming.kebab if naming else (kebab_case("-".join(clause.subject + clause.complement)) or "work")
        description = clause.text
        if clause.verb and words(clause.text)[:1] != [clause.verb]:
            description = f"{clause.verb} {clause.text}".strip()
        domain = self.catalog.get(domain_name) if domain_name else None
        return TaskNode(
            id=f"{domain_name or 'task'}.{slug}",
            description=description,
            tag=domain_name,
            resource=resource,
            capabilities=[capability.value for capability in clause.capabilities],
            done_criterion=_done_criterion(domain, domain_name, naming, slug, description),
        )

    # -- Edges -----------------------------------------------------------------

    def _link(self, graph: TaskGraph) -> None:
        for node in graph.nodes:
            needs = self._requires(node)
            deps: list[str] = []
            for other in graph.nodes:
                if other.id == node.id:
                    continue
                offers = self._provides(other)
                if not offers:
                    continue
                if node.tag is None or node.tag not in self.catalog:
                    # Untagged work may touch anything a specialist produces.
                    if node.resource is None or other.resource in (None, node.resource):
                        deps.append(other.id)
                    continue
                if needs & offers and (node.resource is None or other.resource == node.resource):
                    deps.append(other.id)
            node.depends_on = sorted(set(deps))

    def _requires(self, node: TaskNode) -> set[str]:
        spec = self.catalog.get(node.tag) if node.tag else None
        return set(spec.requires) if spec else set()

    def _provides(self, node: TaskNode) -> set[str]:
        spec = self.catalog.get(node.tag) if node.tag else None
        return set(spec.provides) if spec else set()


def decompose(request: str, catalog: Optional[DomainCatalog] = None) -> TaskGraph:
    """Module-level shortcut for ``TaskDecomposer(catalog).decompose(request)``."""
    return TaskDecomposer(catalog).decompose(request)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _unique_id(candidate: str, taken: set[str]) -> str:
    if candidate not in taken:
        return candidate
    suffix = 2
    while f"{candidate}-{suffix}" in taken:
        suffix += 1
    return f"{candidate}-{suffix}"


def _done_criterion(
    domain: Optional[DomainSpec],
    domain_name: Optional[str],
    naming: Optional[NamingForms],
    slug: str,
    description: str,
) -> str:
    if domain is None:
        return f"'{description}' is complete"
    values = {
        "domain": domain_name,
        "target": naming.plural if naming else description,
        "singular": naming.singular if naming else slug,
        "plural": naming.plural if naming else slug,
        "pascal": naming.pascal if naming else slug,
        "kebab": naming.kebab if naming else slug,
        "kebab_plural": naming.kebab_plural if naming else slug,
    }
    return domain.done_criterion.format(**values)
