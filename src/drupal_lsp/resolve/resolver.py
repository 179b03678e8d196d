"""Resolve extracted identifiers against the index and validate them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from drupal_lsp.core.memo import MemoCache
from drupal_lsp.extract.grammars import Grammar
from drupal_lsp.index.schema import ENTITY_TYPES, Entity, EntityKind, Tier
from drupal_lsp.index.store import EntityIndex

# Routes Drupal generates at runtime (entity and admin routes). They never
# appear in a routing file but are valid targets everywhere.
KNOWN_ENTITY_ROUTES: tuple[str, ...] = (
    "entity.node.canonical",
    "entity.node.edit_form",
    "entity.node.delete_form",
    "entity.node.version_history",
    "entity.node.revision",
    "entity.node.add_form",
    "entity.node.add_page",
    "entity.user.canonical",
    "entity.user.edit_form",
    "entity.user.cancel_form",
    "entity.user.collection",
    "entity.taxonomy_term.canonical",
    "entity.taxonomy_term.edit_form",
    "entity.taxonomy_term.delete_form",
    "entity.taxonomy_term.add_form",
    "entity.taxonomy_vocabulary.collection",
    "entity.taxonomy_vocabulary.overview_form",
    "entity.comment.canonical",
    "entity.comment.edit_form",
    "entity.comment.delete_form",
    "entity.media.canonical",
    "entity.media.edit_form",
    "entity.media.delete_form",
    "entity.media.add_form",
    "entity.media.collection",
    "entity.file.canonical",
    "entity.block_content.canonical",
    "entity.block_content.edit_form",
    "entity.block_content.delete_form",
    "entity.menu.edit_form",
    "entity.menu.delete_form",
    "entity.menu.collection",
    "entity.view.edit_form",
    "entity.view.collection",
    "system.admin",
    "system.admin_content",
    "system.admin_structure",
    "system.admin_config",
    "system.themes_page",
    "system.modules_list",
    "system.status",
    "system.admin_reports",
    "user.login",
    "user.logout",
    "user.register",
    "user.pass",
    "user.page",
    "user.admin_permissions",
    "user.role_list",
    "user.admin_index",
    "node.add_page",
    "node.add",
    "system.db_update",
    "path.admin_overview",
    "path.admin_add",
    "system.site_information_settings",
    "system.performance_settings",
    "system.logging_settings",
    "system.cron_settings",
    "view.frontpage.page_1",
    "view.content.page_1",
    "view.files.page_1",
    "view.user_admin_people.page_1",
)

_LABELS = {
    EntityKind.SERVICE: "Service",
    EntityKind.ROUTE: "Route",
    EntityKind.LINK: "Parent link",
}


class ValidationResult(str, Enum):
    VALID = "valid"
    ALLOWLISTED = "allowlisted"
    MISSING = "missing"


@dataclass(frozen=True)
class Problem:
    """An unresolved reference, positioned on its identifier."""

    line: int           # 0-based
    start: int
    end: int
    name: str
    kind: EntityKind
    message: str


class Resolver:
    """Resolve and validate identifiers of one entity kind.

    Index presence is checked first; *allowlist* prefixes are consulted only
    for names the index does not know. *builtin_names* are treated as
    present (runtime-generated routes) and are offered as completion
    candidates with tier ``core``.

    With a *memo*, the completion candidate list is cached under
    ``<kind>:candidates``; the synchronizer drops it whenever files of that
    kind are reindexed.
    """

    def __init__(
        self,
        index: EntityIndex,
        kind: EntityKind,
        allowlist: Iterable[str] = (),
        builtin_names: Iterable[str] = (),
        memo: MemoCache | None = None,
    ) -> None:
        self._index = index
        self.kind = kind
        self._memo = memo
        self.allowlist = tuple(allowlist)
        self._builtins = {
            name: _builtin_entity(kind, name) for name in builtin_names
        }

    def resolve(self, identifier: str) -> Entity | None:
        entity = self._index.get_by_name(identifier, self.kind)
        if entity is not None:
            return entity
        return self._builtins.get(identifier)

    def exists(self, identifier: str) -> bool:
        return self._index.has_name(identifier, self.kind) or identifier in self._builtins

    def validate(self, identifier: str) -> ValidationResult:
        if self.exists(identifier):
            return ValidationResult.VALID
        if any(identifier.startswith(prefix) for prefix in self.allowlist):
            return ValidationResult.ALLOWLISTED
        return ValidationResult.MISSING

    def candidates(self) -> list[Entity]:
        """Indexed entities plus built-ins the index does not already define."""
        if self._memo is None:
            return self._collect_candidates()
        cached = self._memo.get_or_compute(f"{self.kind.value}:candidates", self._collect_candidates)
        return list(cached)

    def _collect_candidates(self) -> list[Entity]:
        entities = self._index.get_all(self.kind)
        known = {e.name for e in entities}
        entities.extend(e for name, e in self._builtins.items() if name not in known)
        return entities

    def diagnose(self, lines: Sequence[str], grammar: Grammar) -> list[Problem]:
        """Recompute all problems for a document: one per unresolved occurrence."""
        problems: list[Problem] = []
        for line_no, ref in grammar.scan(lines):
            if ref.kind is not self.kind or not ref.checked:
                continue
            if self.validate(ref.name) is not ValidationResult.MISSING:
                continue
            problems.append(Problem(
                line=line_no,
                start=ref.start,
                end=ref.end,
                name=ref.name,
                kind=self.kind,
                message=f"{_LABELS[self.kind]} '{ref.name}' not found",
            ))
        problems.sort(key=lambda p: (p.line, p.start))
        return problems


def _builtin_entity(kind: EntityKind, name: str) -> Entity:
    return ENTITY_TYPES[kind](name=name, source_file=None, tier=Tier.CORE)
