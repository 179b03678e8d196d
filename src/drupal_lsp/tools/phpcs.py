"""PHP_CodeSniffer integration: phpcs diagnostics and phpcbf fixes.

Both binaries are driven through asyncio subprocesses with the document on
stdin. Invocations for one document are serialized with a per-document lock;
different documents run concurrently. Failures never reach the caller: an
unusable tool yields ``[]``, ``False`` or ``None``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from drupal_lsp.core.errors import ExternalToolError
from drupal_lsp.core.memo import MemoCache
from drupal_lsp.index.sync import uri_to_path

logger = logging.getLogger(__name__)

CONFIG_CANDIDATES = (".phpcs.xml", "phpcs.xml", "phpcs.xml.dist", ".phpcs.xml.dist")
DEFAULT_STANDARD = "Drupal"

# phpcbf: 0 = nothing to fix, 1 = fixed, 2 = fixed but unfixable errors remain.
PHPCBF_SUCCESS_CODES = frozenset({0, 1, 2})


@dataclass(frozen=True)
class StyleMessage:
    """One phpcs finding. ``line`` and ``column`` are 1-based as reported."""

    severity: str       # "error" | "warning"
    line: int
    column: int
    message: str
    source: str
    fixable: bool = False


@dataclass(frozen=True)
class PhpcsBinaries:
    """Resolved tool locations and the ``--standard`` argument."""

    phpcs: str | None
    phpcbf: str | None
    standard: str

    @classmethod
    def discover(cls, workspace_root: Path, standard: str = "") -> PhpcsBinaries:
        """Prefer ``vendor/bin`` in the workspace, then ``PATH``.

        The standard is *standard* when given, else the first phpcs config
        file in the workspace, else ``Drupal``.
        """
        if not standard:
            config = next(
                (workspace_root / c for c in CONFIG_CANDIDATES if (workspace_root / c).is_file()),
                None,
            )
            standard = str(config) if config else DEFAULT_STANDARD
        return cls(
            phpcs=_find_binary(workspace_root, "phpcs"),
            phpcbf=_find_binary(workspace_root, "phpcbf"),
            standard=standard,
        )


def _find_binary(workspace_root: Path, name: str) -> str | None:
    vendored = workspace_root / "vendor" / "bin" / name
    if vendored.is_file():
        return str(vendored)
    return shutil.which(name)


def parse_report(output: str, display_path: str) -> list[StyleMessage]:
    """Turn a ``--report=json`` document into messages for *display_path*."""
    try:
        report = json.loads(output)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse phpcs output: %s", exc)
        return []
    files = report.get("files") if isinstance(report, dict) else None
    if not isinstance(files, dict) or not files:
        return []
    entry = files.get(display_path)
    if entry is None and len(files) == 1:
        entry = next(iter(files.values()))
    if not isinstance(entry, dict):
        return []

    messages: list[StyleMessage] = []
    for raw in entry.get("messages") or []:
        messages.append(StyleMessage(
            severity="error" if raw.get("type") == "ERROR" else "warning",
            line=int(raw.get("line", 1)),
            column=int(raw.get("column", 1)),
            message=str(raw.get("message", "")),
            source=str(raw.get("source", "")),
            fixable=bool(raw.get("fixable", False)),
        ))
    return messages


class PhpcsRunner:
    """Run phpcs / phpcbf for documents of one workspace.

    Parameters
    ----------
    binaries:
        Resolved tool paths (see :meth:`PhpcsBinaries.discover`).
    enabled:
        User setting; the runner is only usable when this is True *and*
        phpcs was found.
    memo:
        Optional cache for check results, keyed by the caller's cache key
        (document URI plus version).
    """

    def __init__(
        self,
        binaries: PhpcsBinaries,
        enabled: bool = True,
        memo: MemoCache | None = None,
    ) -> None:
        self.binaries = binaries
        self._enabled = enabled
        self._memo = memo
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled and self.binaries.phpcs is not None

    @property
    def can_fix(self) -> bool:
        return self._enabled and self.binaries.phpcbf is not None

    def configure(self, binaries: PhpcsBinaries | None = None, enabled: bool | None = None) -> None:
        """Apply changed settings; cached results are dropped."""
        if binaries is not None:
            self.binaries = binaries
        if enabled is not None:
            self._enabled = enabled
        if self._memo is not None:
            self._memo.clear_matching("phpcs:*")

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def check(
        self, text: str, display_path: str, cache_key: str | None = None
    ) -> list[StyleMessage]:
        """Sniff *text* as if it were *display_path*."""
        if not self.enabled:
            return []
        memo_key = f"phpcs:{cache_key}" if cache_key else None
        if memo_key and self._memo is not None:
            cached = self._memo.get(memo_key)
            if cached is not None:
                return cached

        async with self._lock(display_path):
            args = [
                "--report=json",
                "--no-colors",
                "-q",
                f"--standard={self.binaries.standard}",
                f"--stdin-path={display_path}",
                "-",
            ]
            try:
                _, stdout = await self._run(self.binaries.phpcs, args, text)
            except ExternalToolError as exc:
                logger.warning("%s", exc)
                return []
            messages = parse_report(stdout, display_path) if stdout.strip() else []

        if memo_key and self._memo is not None:
            self._memo.set(memo_key, messages)
        return messages

    async def fix_file(self, path: str) -> bool:
        """Run phpcbf on *path* in place."""
        if not self.can_fix:
            return False
        async with self._lock(path):
            args = [f"--standard={self.binaries.standard}", path]
            try:
                code, _ = await self._run(self.binaries.phpcbf, args, None)
            except ExternalToolError as exc:
                logger.warning("%s", exc)
                return False
        if code not in PHPCBF_SUCCESS_CODES:
            logger.warning("phpcbf failed on %s (exit code %s)", path, code)
            return False
        self.forget(path)
        return True

    async def format_text(self, text: str, display_path: str) -> str | None:
        """Return the phpcbf-fixed version of *text*, or None when unchanged."""
        if not self.can_fix:
            return None
        async with self._lock(display_path):
            args = ["-q", f"--standard={self.binaries.standard}", f"--stdin-path={display_path}", "-"]
            try:
                code, stdout = await self._run(self.binaries.phpcbf, args, text)
            except ExternalToolError as exc:
                logger.warning("%s", exc)
                return None
        if code not in PHPCBF_SUCCESS_CODES:
            return None
        if not stdout or stdout == text:
            return None
        # phpcbf prints a summary instead of the document when nothing changed.
        if any(marker in stdout for marker in ("No violations", "Time:", "Memory:")):
            return None
        return stdout

    def forget(self, path_or_uri: str) -> None:
        """Drop cached check results and the idle lock for a document."""
        if self._memo is not None:
            self._memo.clear_matching(f"*{path_or_uri}*")
        for key in {path_or_uri, uri_to_path(path_or_uri)}:
            lock = self._locks.get(key)
            if lock is not None and not lock.locked():
                del self._locks[key]

    async def _run(self, binary: str | None, args: list[str], stdin: str | None) -> tuple[int, str]:
        if binary is None:
            raise ExternalToolError("phpcs", "binary not found")
        name = Path(binary).name
        try:
            process = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate(
                stdin.encode("utf-8") if stdin is not None else None
            )
        except OSError as exc:
            raise ExternalToolError(name, f"cannot start {binary}: {exc}") from exc

        if stderr:
            logger.debug("%s stderr: %s", name, stderr.decode("utf-8", errors="replace").strip())
        return process.returncode or 0, stdout.decode("utf-8", errors="replace")
