"""Call-site shapes: one regex matcher per way a reference appears in source.

Every shape answers three questions about a single line of text:

  find_all(line)              every reference on the line (diagnostics)
  find_at(line, cursor)       the reference whose literal contains the cursor
  typed_prefix(line, cursor)  what has been typed inside an open literal

Quoted shapes tolerate a missing closing quote, so a reference that is still
being typed is found exactly like a finished one.
"""

from __future__ import annotations

import re
from abc import ABC
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, Sequence

from drupal_lsp.index.schema import EntityKind

# Characters allowed in service, route and link names.
NAME = r"[\w.\-]"


@dataclass(frozen=True)
class Reference:
    """An identifier found in source text.

    ``kind`` is None for PHP class references (``member`` then holds an
    optional method name). ``start``/``end`` delimit the identifier itself;
    ``literal_start``/``literal_end`` also cover the quotes or sigil and are
    used for cursor containment, inclusive at both ends.
    """

    kind: EntityKind | None
    name: str
    start: int
    end: int
    literal_start: int
    literal_end: int
    shape: str
    terminated: bool = True
    checked: bool = True        # False: usable for lookups, never reported
    member: str | None = None

    def contains(self, cursor: int) -> bool:
        return self.literal_start <= cursor <= self.literal_end


@dataclass(frozen=True)
class TypedPrefix:
    """Text typed so far inside an open literal, and where it starts."""

    text: str
    start: int
    shape: str
    sigil: str = ""


class Shape(ABC):
    """Base matcher.

    Subclasses provide ``_pattern`` (named groups ``open``, ``name`` and
    optionally ``close``) and ``_prefix_pattern`` (matched against the text
    left of the cursor, anchored at its end, with groups ``open`` and
    ``name``).
    """

    shape_name = "shape"
    _pattern: re.Pattern[str]
    _prefix_pattern: re.Pattern[str] | None = None

    def __init__(self, kind: EntityKind | None) -> None:
        self.kind = kind

    def find_all(self, line: str) -> list[Reference]:
        return [ref for ref in self._iter(line) if ref.name]

    def find_at(self, line: str, cursor: int) -> Reference | None:
        for ref in self._iter(line):
            if ref.name and ref.contains(cursor):
                return ref
        return None

    def typed_prefix(self, line: str, cursor: int) -> TypedPrefix | None:
        if self._prefix_pattern is None:
            return None
        m = self._prefix_pattern.search(line[:cursor])
        if m is None:
            return None
        return TypedPrefix(text=m.group("name"), start=m.start("name"), shape=self.shape_name)

    def applies(self, lines: Sequence[str] | None, line_no: int | None) -> bool:
        """Whether this shape is valid on *line_no* given the whole document."""
        return True

    def scan(self, lines: Sequence[str]) -> Iterator[tuple[int, Reference]]:
        """Yield ``(line_no, reference)`` for every reference in a document."""
        for line_no, line in enumerate(lines):
            for ref in self.find_all(line):
                yield line_no, ref

    def _iter(self, line: str) -> Iterator[Reference]:
        for m in self._pattern.finditer(line):
            yield self._reference(m)

    def _reference(self, m: re.Match[str], **extra: object) -> Reference:
        close = m.group("close") if "close" in m.re.groupindex else ""
        terminated = close is not None
        return Reference(
            kind=self.kind,
            name=m.group("name"),
            start=m.start("name"),
            end=m.end("name"),
            literal_start=m.start("open"),
            literal_end=m.end("close") if close else m.end("name"),
            shape=self.shape_name,
            terminated=terminated,
            **extra,  # type: ignore[arg-type]
        )


def _quoted_call(head: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    """Full and prefix patterns for ``<head>( '<name>'``."""
    full = re.compile(
        head + r"\s*\(\s*(?P<open>['\"])(?P<name>" + NAME + r"*)(?P<close>(?P=open))?"
    )
    prefix = re.compile(
        head + r"\s*\(\s*(?P<open>['\"])(?P<name>" + NAME + r"*)\Z"
    )
    return full, prefix


# ── PHP: services ─────────────────────────────────────────────────────────────

class StaticFactoryShape(Shape):
    """``\\Drupal::service('name')``."""

    shape_name = "static_factory"

    def __init__(self) -> None:
        super().__init__(EntityKind.SERVICE)
        self._pattern, self._prefix_pattern = _quoted_call(r"::service")


class InstanceAccessorShape(Shape):
    """``$container->get('name')`` and friends.

    Any ``->get('x')`` is found for cursor lookups, but only calls on a
    container receiver (``$this``, ``$container``, ``$this->container``) are
    marked ``checked``; ``$request->query->get('page')`` must never be
    reported as a missing service.
    """

    shape_name = "instance_accessor"

    _prefix_pattern: re.Pattern[str]

    _RECEIVER = r"(?P<receiver>\$this->container|\$container|\$this)?"

    def __init__(self) -> None:
        super().__init__(EntityKind.SERVICE)
        self._pattern, self._prefix_pattern = _quoted_call(self._RECEIVER + r"->get")

    def _iter(self, line: str) -> Iterator[Reference]:
        for m in self._pattern.finditer(line):
            yield self._reference(m, checked=m.group("receiver") is not None)

    def typed_prefix(self, line: str, cursor: int) -> TypedPrefix | None:
        m = self._prefix_pattern.search(line[:cursor])
        if m is None or m.group("receiver") is None:
            return None
        return TypedPrefix(text=m.group("name"), start=m.start("name"), shape=self.shape_name)


# ── PHP: routes ───────────────────────────────────────────────────────────────

class CallShape(Shape):
    """A route-taking call such as ``Url::fromRoute('name')``.

    *skip_args* leading arguments are skipped first, so
    ``Link::createFromRoute($this->t('Home'), 'name')`` works with 1.
    """

    shape_name = "call"

    _ARG = r"(?:[^,()]|\((?:[^()]|\([^()]*\))*\))*,\s*"

    def __init__(self, callee: str, kind: EntityKind = EntityKind.ROUTE, skip_args: int = 0) -> None:
        super().__init__(kind)
        self.callee = callee
        head = re.escape(callee) + r"\s*\(\s*" + self._ARG * skip_args
        self._pattern = re.compile(
            head + r"(?P<open>['\"])(?P<name>" + NAME + r"*)(?P<close>(?P=open))?"
        )
        self._prefix_pattern = re.compile(
            head + r"(?P<open>['\"])(?P<name>" + NAME + r"*)\Z"
        )


# ── YAML ──────────────────────────────────────────────────────────────────────

class SigilReferenceShape(Shape):
    """``@name`` service references in argument lists (``@?name`` optional).

    The ``@`` must open a quoted scalar or follow ``[``, ``,``, ``- `` or
    ``: ``. Nothing inside a YAML comment counts, so ``# @todo`` and
    ``admin@example.com`` are never references.
    """

    shape_name = "sigil"

    _LEAD = r"(?:['\"]|\[[ \t]*|,[ \t]*|[-:][ \t]+)"

    def __init__(self) -> None:
        super().__init__(EntityKind.SERVICE)
        self._pattern = re.compile(self._LEAD + r"(?P<open>@[?!]?)(?P<name>" + NAME + r"+)")
        self._prefix_pattern = re.compile(
            self._LEAD + r"(?P<open>@[?!]?)(?P<name>" + NAME + r"*)\Z"
        )

    def _iter(self, line: str) -> Iterator[Reference]:
        yield from super()._iter(line[:comment_start(line)])

    def typed_prefix(self, line: str, cursor: int) -> TypedPrefix | None:
        if cursor > comment_start(line):
            return None
        m = self._prefix_pattern.search(line[:cursor]) if self._prefix_pattern else None
        if m is None:
            return None
        return TypedPrefix(
            text=m.group("name"),
            start=m.start("open"),
            shape=self.shape_name,
            sigil=m.group("open"),
        )


def comment_start(line: str) -> int:
    """Offset of the YAML comment on *line*, or ``len(line)`` if it has none.

    ``#`` opens a comment at the start of the line or after whitespace, but
    not inside a quoted scalar.
    """
    quote = None
    for i, ch in enumerate(line):
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in "'\"" and (i == 0 or line[i - 1] in " \t[,:{"):
            quote = ch
        elif ch == "#" and (i == 0 or line[i - 1] in " \t"):
            return i
    return len(line)


class YamlKeyValueShape(Shape):
    """``key: name``, ``key: 'name'`` or ``key: "name`` for the given keys."""

    shape_name = "key_value"

    def __init__(self, keys: Iterable[str], kind: EntityKind) -> None:
        super().__init__(kind)
        self.keys = tuple(keys)
        alternation = "|".join(re.escape(k) for k in self.keys)
        head = r"^\s*(?:" + alternation + r"):[ \t]*"
        self._pattern = re.compile(
            head
            + r"(?P<open>['\"]?)(?P<name>" + NAME + r"*)(?P<close>(?P=open))?"
            + r"(?=\s*(?:#.*)?$)"
        )
        self._prefix_pattern = re.compile(
            head + r"(?P<open>['\"]?)(?P<name>" + NAME + r"*)\Z"
        )


class ServiceKeyShape(Shape):
    """The definition key of a service (``  name:`` under ``services:``).

    Lookup only: never reported, and offers no typed prefix.
    """

    shape_name = "service_key"

    def __init__(self) -> None:
        super().__init__(EntityKind.SERVICE)
        self._pattern = re.compile(
            r"^ {2}(?P<open>)(?P<name>(?!_)" + NAME + r"+):\s*(?:#.*)?$"
        )

    def _iter(self, line: str) -> Iterator[Reference]:
        for m in self._pattern.finditer(line):
            yield self._reference(m, checked=False)


class YamlListItemShape(Shape):
    """Items of a block list under *key* (``appears_on:`` by default).

    Line-level matching accepts any ``- name`` item; :meth:`scan` and
    :meth:`applies` additionally require the item to sit inside the block.
    """

    shape_name = "list_item"

    _ITEM = re.compile(r"^\s*-\s*")
    _KEY = re.compile(r"^\s*[\w.\-]+:")

    def __init__(self, key: str, kind: EntityKind) -> None:
        super().__init__(kind)
        self.key = key
        self._opener = re.compile(r"^\s*" + re.escape(key) + r":\s*(?:#.*)?$")
        self._pattern = re.compile(
            r"^\s*-[ \t]*(?P<open>['\"]?)(?P<name>" + NAME + r"*)(?P<close>(?P=open))?"
            r"(?=\s*(?:#.*)?$)"
        )
        self._prefix_pattern = re.compile(
            r"^\s*-[ \t]*(?P<open>['\"]?)(?P<name>" + NAME + r"*)\Z"
        )

    def applies(self, lines: Sequence[str] | None, line_no: int | None) -> bool:
        if lines is None or line_no is None:
            return True
        for i in range(line_no - 1, -1, -1):
            text = lines[i]
            if not text.strip() or text.lstrip().startswith("#"):
                continue
            if self._opener.match(text):
                return True
            if self._ITEM.match(text):
                continue
            return False
        return False

    def scan(self, lines: Sequence[str]) -> Iterator[tuple[int, Reference]]:
        inside = False
        for line_no, line in enumerate(lines):
            if self._opener.match(line):
                inside = True
                continue
            if inside and self._KEY.match(line) and not line.lstrip().startswith("-"):
                inside = False
            if inside:
                for ref in self.find_all(line):
                    yield line_no, ref


# ── Class references ─────────────────────────────────────────────────────────

class ClassReferenceShape(Shape):
    """A fully qualified PHP class in a YAML value, optionally ``::method``.

    ``class: Drupal\\foo\\Bar`` or ``_controller: '\\Drupal\\foo\\Ctl::page'``.
    A backslash is required so plain scalar values are never mistaken for a
    class.
    """

    shape_name = "class_reference"

    def __init__(self) -> None:
        super().__init__(None)
        self._pattern = re.compile(
            r":[ \t]*(?P<open>['\"]?)\\?"
            r"(?P<name>[A-Za-z_]\w*(?:\\\w+)+)"
            r"(?:::(?P<member>\w+))?"
            r"(?P<close>(?P=open))?"
        )

    def _iter(self, line: str) -> Iterator[Reference]:
        for m in self._pattern.finditer(line):
            ref = self._reference(m, member=m.group("member"))
            yield replace(ref, literal_end=max(ref.literal_end, m.end()))
