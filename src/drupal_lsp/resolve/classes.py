"""Map PHP class names to files under a Drupal root, and find symbols in them.

Lookups go through the memo cache: ``class:<fqcn>`` for paths,
``method:<path>#<method>`` for symbol lines and ``class:doc:<path>#<line>``
for docblocks. Editing any PHP file drops the ``class:*`` and ``method:*``
entries.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from drupal_lsp.core.memo import MemoCache

logger = logging.getLogger(__name__)

_CLASS_DECL = re.compile(
    r"^\s*(?:(?:abstract|final|readonly)\s+)*(?:class|interface|trait|enum)\s+\w+"
)

# Namespaces that live in core/lib rather than a module's src/.
CORE_LIB_NAMESPACES = ("Core", "Component")


def _method_decl(method: str) -> re.Pattern[str]:
    return re.compile(
        r"^\s*(?:(?:abstract|final|public|protected|private|static)\s+)*"
        r"function\s+&?" + re.escape(method) + r"\s*\("
    )


class ClassResolver:
    """Resolve ``Drupal\\...`` class names to PHP files.

    ``Drupal\\Core\\X`` and ``Drupal\\Component\\X`` map into ``core/lib``.
    ``Drupal\\<module>\\X`` is searched in custom, contrib, plain ``modules/``
    and finally core modules; the first existing file wins.
    """

    def __init__(self, drupal_root: Path, memo: MemoCache) -> None:
        self._root = drupal_root
        self._memo = memo

    def candidate_paths(self, fqcn: str) -> list[Path]:
        parts = fqcn.lstrip("\\").split("\\")
        if len(parts) < 3 or parts[0] != "Drupal":
            return []
        if parts[1] in CORE_LIB_NAMESPACES:
            return [self._root.joinpath("core", "lib", *parts).with_suffix(".php")]
        module, rest = parts[1], parts[2:]
        relative = Path(*rest).with_suffix(".php")
        return [
            self._root / "modules" / "custom" / module / "src" / relative,
            self._root / "modules" / "contrib" / module / "src" / relative,
            self._root / "modules" / module / "src" / relative,
            self._root / "core" / "modules" / module / "src" / relative,
        ]

    def resolve_class_path(self, fqcn: str) -> Path | None:
        return self._memo.get_or_compute(f"class:{fqcn}", lambda: self._find(fqcn))

    def _find(self, fqcn: str) -> Path | None:
        for candidate in self.candidate_paths(fqcn):
            if candidate.is_file():
                return candidate
        return None

    def symbol_line(self, path: Path, method: str | None = None) -> int:
        """0-based line of *method* in *path*, else of the class declaration."""
        key = f"method:{path}#{method or ''}"
        return self._memo.get_or_compute(key, lambda: self._symbol_line(path, method))

    def _symbol_line(self, path: Path, method: str | None) -> int:
        lines = _read_lines(path)
        if method:
            pattern = _method_decl(method)
            for i, line in enumerate(lines):
                if pattern.match(line):
                    return i
        for i, line in enumerate(lines):
            if _CLASS_DECL.match(line):
                return i
        return 0

    def docblock(self, path: Path, line: int) -> list[str]:
        """Lines of the ``/** ... */`` comment directly above *line*.

        Leading ``*`` decoration is stripped; attributes (``#[...]``) between
        the comment and the symbol are skipped. Empty when there is none.
        """
        key = f"class:doc:{path}#{line}"
        return self._memo.get_or_compute(key, lambda: _docblock(_read_lines(path), line))


def _docblock(lines: list[str], line: int) -> list[str]:
    collected: list[str] = []
    inside = False
    for i in range(min(line, len(lines)) - 1, -1, -1):
        text = lines[i].strip()
        if not inside:
            if text.endswith("*/"):
                inside = True
                if text.startswith("/**"):
                    return [_strip_decoration(text[3:-2])]
                continue
            if not text or text.startswith("#["):
                continue
            return []
        if text.startswith("/**"):
            collected.reverse()
            return collected
        collected.append(_strip_decoration(text))
    return []


def _strip_decoration(text: str) -> str:
    return re.sub(r"^\*\s?", "", text.strip()).rstrip()


def _read_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return []
