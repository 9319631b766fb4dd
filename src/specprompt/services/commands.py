"""User-facing fragment commands: prompt, refine, navigate.

This is where errors stop. Every command reports failures through the UI
and returns None when the operation did not proceed.
"""

import os
from pathlib import Path
from typing import Optional

from gpspec_outline import Document, Fragment

from specprompt.models.pick import CREATE_TEMPLATE_ACTION, DISCUSSIONS_URL
from specprompt.models.request import AiRequest
from specprompt.models.template import PromptTemplate
from specprompt.services.document_store import DocumentStore
from specprompt.services.exceptions import (
    AmbiguousFragmentError,
    FileModifiedError,
    FragmentNotFoundError,
    NoPreviousRequestError,
    PreconditionError,
    StaleFragmentError,
)
from specprompt.services.fragment_store import Identifier, FragmentStore
from specprompt.services.refinement import apply_refinement
from specprompt.services.request_controller import RequestController
from specprompt.services.template_catalog import TemplateCatalog
from specprompt.ui import EditorUI
from specprompt.utils.logging import get_logger


logger = get_logger(__name__)

NOT_FOUND_MESSAGE = (
    "Sorry, we could not find where to apply the tool. "
    "Pass a .gpspec.md file, a fragment id or a file referenced by a specification."
)
UNSAVED_MESSAGE = "Cancelled. Please save all files before running a tool."
REFINE_TITLE = "What do you want to add to your spec?"
REFINE_DESCRIPTION = (
    "Your recommendation will be added at the end of the specification; "
    "then the tool will be started again."
)

# Failures reported to the user; anything else propagates
REPORTED_ERRORS = (
    FragmentNotFoundError,
    PreconditionError,
    FileModifiedError,
    ValueError,
    OSError,
)


class FragmentCommands:
    """
    Orchestrates the store, catalog, controller and UI.

    Example:
        >>> commands = FragmentCommands(store, catalog, controller, documents, ui)
        >>> request = await commands.prompt("src/util.ts")
        >>> await controller.wait()
        >>> await commands.refine()
    """

    def __init__(
        self,
        fragments: FragmentStore,
        catalog: TemplateCatalog,
        controller: RequestController,
        documents: DocumentStore,
        ui: EditorUI,
        templates_dir: Optional[Path] = None,
    ):
        self.fragments = fragments
        self.catalog = catalog
        self.controller = controller
        self.documents = documents
        self.ui = ui
        self.templates_dir = templates_dir or fragments.paths.templates_dir()

    async def check_saved(self) -> bool:
        """
        Refuse to run while open documents have unsaved changes.

        Re-parses the workspace when everything is saved.

        Returns:
            True if the operation may proceed
        """
        dirty = [d.path for d in self.documents.list_open_documents() if d.is_dirty]
        if dirty:
            logger.info("command_blocked_unsaved", paths=dirty)
            await self.ui.notify("error", UNSAVED_MESSAGE)
            return False

        self.fragments.reparse()
        return True

    async def pick_template(self, fragment: Fragment) -> Optional[PromptTemplate]:
        """
        Let the user pick a template applicable to a fragment.

        The escape actions are handled here and yield None.
        """
        items = self.catalog.present(self.catalog.applicable_templates(fragment))
        picked = await self.ui.choose_pick(items, f"Pick a GPTool to apply to {fragment.title}")

        if picked is None:
            logger.debug("user_cancelled", step="pick_template")
            return None
        if picked.kind == "template":
            return picked.template
        if picked.kind == "action":
            if picked.action == CREATE_TEMPLATE_ACTION:
                await self.create_template()
            else:
                await self.ui.open_external(DISCUSSIONS_URL)
        return None

    async def create_template(self) -> Optional[Path]:
        """Ask for a title and write a new workspace template skeleton."""
        title = await self.ui.prompt_text(
            "Title of the new GPTool",
            f"A template file will be created in {self.templates_dir}",
        )
        if title is None:
            logger.debug("user_cancelled", step="create_template")
            return None

        try:
            path = self.catalog.create_template(self.templates_dir, title)
        except (FileExistsError, ValueError, OSError) as e:
            logger.error("template_create_failed", error=str(e))
            await self.ui.notify("error", str(e))
            return None

        await self.ui.notify("info", f"Created {path}. Edit it, then run the tool again.")
        return path

    async def prompt(
        self,
        identifier: Identifier = None,
        template: Optional[PromptTemplate] = None,
    ) -> Optional[AiRequest]:
        """
        Resolve a target, pick a template and start a request.

        Args:
            identifier: Fragment, fragment id, path, or None for the previous target
            template: Template to apply (the user picks one if omitted)

        Returns:
            The started request, or None if the operation did not proceed
        """
        try:
            if not await self.check_saved():
                return None

            await self.controller.cancel()
            fragment = await self._resolve(identifier)
            if fragment is None:
                return None

            if template is None:
                template = await self.pick_template(fragment)
                if template is None:
                    return None
            else:
                # Prefer the catalog's current definition
                try:
                    template = self.catalog.get_template(template.id)
                except KeyError:
                    pass

            await self.controller.cancel()
            return await self.controller.start(fragment, template, template.title)

        except REPORTED_ERRORS as e:
            await self._report("prompt", e)
            return None

    async def refine(self) -> Optional[AiRequest]:
        """
        Append a user note to the previous request's target and run it again.

        Returns:
            The restarted request, or None if the operation did not proceed
        """
        try:
            await self.controller.cancel()
            fragment = await self._resolve(None)
            if fragment is None:
                return None
            _, template = self.controller.resume_previous()

            note = await self.ui.prompt_text(REFINE_TITLE, REFINE_DESCRIPTION)
            if not note:
                logger.debug("user_cancelled", step="refine")
                return None

            await self.documents.save_all_open_documents()
            filename = fragment.filename
            text = self.documents.read_text(filename)

            # Locate the fragment in the text being edited, not in an older parse
            current = Document.parse(filename, text).fragment_by_id.get(fragment.full_id)
            if current is None:
                raise StaleFragmentError(fragment.full_id)

            self.documents.write_text(filename, apply_refinement(text, current, note))
            await self.documents.save_all_open_documents()

            logger.info("refinement_applied", path=filename, fragment=current.full_id, template=template.id)
            await self.ui.notify(
                "info",
                f"Added refinement in {os.path.basename(filename)}. Restarting {template.title}.",
            )

        except REPORTED_ERRORS as e:
            await self._report("refine", e)
            return None

        return await self.prompt(current, template)

    async def navigate(self, identifier: Identifier) -> Optional[Fragment]:
        """
        Reveal a fragment's start position.

        Returns:
            The fragment, or None if it could not be found
        """
        try:
            fragment = self.fragments.lookup(identifier)
        except FragmentNotFoundError as e:
            await self._report("navigate", e)
            return None

        await self.ui.reveal_position(fragment.filename, fragment.start_pos)
        return fragment

    async def _resolve(self, identifier: Identifier) -> Optional[Fragment]:
        previous = self.controller.last_request.fragment if self.controller.last_request else None
        try:
            return self.fragments.resolve_fragment(identifier, previous)
        except AmbiguousFragmentError as e:
            picked = await self.ui.choose_pick(e.options, "Select GPSpec file")
            if picked is None:
                logger.debug("user_cancelled", step="select_spec_document")
                return None
            if picked.value is None:
                return self.fragments.create_spec_for(e.path)
            return self.fragments.resolve_document(picked.value)

    async def _report(self, operation: str, error: Exception) -> None:
        if isinstance(error, NoPreviousRequestError):
            message = "No previous request. Run a tool on a specification first."
        elif isinstance(error, StaleFragmentError):
            message = "The fragment no longer exists; the specification changed. Run the tool again."
        elif isinstance(error, FragmentNotFoundError):
            message = NOT_FOUND_MESSAGE
        else:
            message = str(error)

        logger.error(
            "command_failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
        )
        await self.ui.notify("error", message)
