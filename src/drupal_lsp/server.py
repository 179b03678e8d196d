"""Language Server Protocol adapter built on pygls.

Every handler converts the request into a :class:`DocumentContext` and
delegates to the session's provider registry. Until ``initialize`` has run,
or when the workspace is not a Drupal project, handlers return empty
results.
"""

from __future__ import annotations

import logging
from pathlib import Path

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from drupal_lsp import __version__
from drupal_lsp.core.config import load_config
from drupal_lsp.core.session import Session
from drupal_lsp.index.sync import uri_to_path
from drupal_lsp.providers.base import DocumentContext

logger = logging.getLogger(__name__)

SERVER_NAME = "drupal-lsp"
SETTINGS_SECTION = "drupalLsp"
PHPCBF_COMMAND = "drupalLsp.runPhpcbf"
COMPLETION_TRIGGERS = [".", ":", "\\", "(", "'", '"', "@", " "]


class DrupalLanguageServer(LanguageServer):
    """pygls server holding the one :class:`Session` of its workspace."""

    def __init__(self) -> None:
        super().__init__(SERVER_NAME, __version__)
        self.session: Session | None = None

    def active_session(self) -> Session | None:
        if self.session is None or not self.session.detected:
            return None
        return self.session

    def document(self, uri: str) -> DocumentContext:
        doc = self.workspace.get_text_document(uri)
        return DocumentContext.from_text(uri, doc.source, doc.version)

    def custom_document(self, uri: str) -> tuple[Session, DocumentContext] | None:
        """Session and document, only for custom code of a Drupal workspace."""
        session = self.active_session()
        if session is None or not session.is_custom_code(uri_to_path(uri)):
            return None
        return session, self.document(uri)


def workspace_root(params: types.InitializeParams) -> Path:
    """Root directory from the first workspace folder, root URI or root path."""
    if params.workspace_folders:
        return Path(uri_to_path(params.workspace_folders[0].uri))
    if params.root_uri:
        return Path(uri_to_path(params.root_uri))
    if params.root_path:
        return Path(params.root_path)
    return Path.cwd()


def create_server() -> DrupalLanguageServer:
    """Build a server with every feature registered."""
    server = DrupalLanguageServer()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @server.feature(types.INITIALIZE)
    def initialize(ls: DrupalLanguageServer, params: types.InitializeParams) -> None:
        root = workspace_root(params)
        options = params.initialization_options
        overrides = options.get(SETTINGS_SECTION, options) if isinstance(options, dict) else None
        ls.session = Session(root, config=load_config(root, overrides=overrides))
        if not ls.session.detected:
            logger.warning("No Drupal installation found in %s, features disabled", root)

    @server.feature(types.INITIALIZED)
    async def initialized(ls: DrupalLanguageServer, params: types.InitializedParams) -> None:
        session = ls.active_session()
        if session is None:
            return
        session.start()
        await session.scan_and_populate()

    @server.feature(types.SHUTDOWN)
    async def shutdown(ls: DrupalLanguageServer, params: None) -> None:
        if ls.session is not None:
            await ls.session.stop()

    # ── Requests ──────────────────────────────────────────────────────────────

    @server.feature(
        types.TEXT_DOCUMENT_COMPLETION,
        types.CompletionOptions(trigger_characters=COMPLETION_TRIGGERS),
    )
    async def completion(
        ls: DrupalLanguageServer, params: types.CompletionParams
    ) -> types.CompletionList | None:
        found = ls.custom_document(params.text_document.uri)
        if found is None:
            return None
        session, doc = found
        items = await session.providers.completions(doc, params.position)
        return types.CompletionList(is_incomplete=False, items=items)

    @server.feature(types.TEXT_DOCUMENT_DEFINITION)
    async def definition(
        ls: DrupalLanguageServer, params: types.DefinitionParams
    ) -> types.Location | None:
        session = ls.active_session()
        if session is None:
            return None
        doc = ls.document(params.text_document.uri)
        return await session.providers.definition(doc, params.position)

    @server.feature(types.TEXT_DOCUMENT_HOVER)
    async def hover(ls: DrupalLanguageServer, params: types.HoverParams) -> types.Hover | None:
        found = ls.custom_document(params.text_document.uri)
        if found is None:
            return None
        session, doc = found
        return await session.providers.hover(doc, params.position)

    @server.feature(
        types.TEXT_DOCUMENT_DIAGNOSTIC,
        types.DiagnosticOptions(
            identifier=SERVER_NAME,
            inter_file_dependencies=True,
            workspace_diagnostics=False,
        ),
    )
    async def diagnostic(
        ls: DrupalLanguageServer, params: types.DocumentDiagnosticParams
    ) -> types.RelatedFullDocumentDiagnosticReport:
        found = ls.custom_document(params.text_document.uri)
        if found is None:
            return types.RelatedFullDocumentDiagnosticReport(items=[])
        session, doc = found
        items = await session.providers.diagnostics(doc)
        return types.RelatedFullDocumentDiagnosticReport(items=items)

    @server.feature(
        types.TEXT_DOCUMENT_CODE_ACTION,
        types.CodeActionOptions(code_action_kinds=[types.CodeActionKind.QuickFix]),
    )
    def code_action(
        ls: DrupalLanguageServer, params: types.CodeActionParams
    ) -> list[types.CodeAction]:
        session = ls.active_session()
        uri = params.text_document.uri
        if session is None or not session.phpcs.can_fix:
            return []
        if not session.is_custom_code(uri_to_path(uri)):
            return []
        style = [
            d for d in params.context.diagnostics
            if d.source and d.source.startswith("phpcs")
        ]
        if not style:
            return []
        return [
            types.CodeAction(
                title="Fix with phpcbf",
                kind=types.CodeActionKind.QuickFix,
                diagnostics=style,
                command=types.Command(
                    title="Run phpcbf",
                    command=PHPCBF_COMMAND,
                    arguments=[uri],
                ),
            )
        ]

    @server.command(PHPCBF_COMMAND)
    async def run_phpcbf(ls: DrupalLanguageServer, uri: str) -> bool:
        session = ls.active_session()
        if session is None:
            return False
        fixed = await session.phpcs.fix_file(uri_to_path(uri))
        session.phpcs.forget(uri)
        return fixed

    @server.feature(types.TEXT_DOCUMENT_FORMATTING)
    async def formatting(
        ls: DrupalLanguageServer, params: types.DocumentFormattingParams
    ) -> list[types.TextEdit] | None:
        found = ls.custom_document(params.text_document.uri)
        if found is None:
            return None
        session, doc = found
        if not doc.is_php:
            return None
        formatted = await session.phpcs.format_text(doc.text, doc.path)
        if formatted is None:
            return None
        return [types.TextEdit(range=doc.full_range, new_text=formatted)]

    # ── Notifications ─────────────────────────────────────────────────────────

    @server.feature(types.TEXT_DOCUMENT_DID_CHANGE)
    async def did_change(
        ls: DrupalLanguageServer, params: types.DidChangeTextDocumentParams
    ) -> None:
        session = ls.active_session()
        if session is None:
            return
        uri = params.text_document.uri
        doc = ls.document(uri)
        await session.on_document_changed(doc.path, doc.text)

    @server.feature(types.TEXT_DOCUMENT_DID_CLOSE)
    def did_close(ls: DrupalLanguageServer, params: types.DidCloseTextDocumentParams) -> None:
        session = ls.active_session()
        if session is not None:
            session.phpcs.forget(params.text_document.uri)

    @server.feature(types.WORKSPACE_DID_CHANGE_WATCHED_FILES)
    async def did_change_watched_files(
        ls: DrupalLanguageServer, params: types.DidChangeWatchedFilesParams
    ) -> None:
        session = ls.active_session()
        if session is None:
            return
        applied = await session.synchronizer.handle_watched_files(params.changes)
        logger.debug("Applied %d of %d file events", applied, len(params.changes))

    @server.feature(types.WORKSPACE_DID_CHANGE_CONFIGURATION)
    async def did_change_configuration(
        ls: DrupalLanguageServer, params: types.DidChangeConfigurationParams
    ) -> None:
        session = ls.session
        settings = params.settings
        if session is None or not isinstance(settings, dict):
            return
        section = settings.get(SETTINGS_SECTION)
        if isinstance(section, dict):
            await session.apply_settings(section)

    return server
