"""CLI entry point for specprompt."""

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from gpspec_outline import Fragment

from specprompt import __version__
from specprompt.models.config import Config, DEFAULT_CONFIG_PATH, WorkspaceConfig
from specprompt.services.builtin_templates import BUILTIN_TEMPLATES, SYSTEM_TEMPLATE_ID
from specprompt.services.commands import FragmentCommands
from specprompt.services.document_store import WorkspaceDocumentStore
from specprompt.services.exceptions import AmbiguousFragmentError, FragmentNotFoundError
from specprompt.services.fragment_store import FragmentStore
from specprompt.services.generation import LLMGenerationBackend
from specprompt.services.llm_client import LLMClient
from specprompt.services.request_controller import RequestController
from specprompt.services.template_catalog import TemplateCatalog
from specprompt.ui import ConsoleUI
from specprompt.utils.logging import configure_logging, get_logger


logger = get_logger(__name__)
console = Console()


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> Config:
    """
    Load configuration from ~/.config/specprompt/config.yaml.

    Returns:
        Validated Config instance

    Raises:
        click.ClickException: If config is missing, has invalid permissions, or validation fails
    """
    try:
        config = Config.load(path)
        logger.info("config_loaded", path=str(path))
        return config
    except FileNotFoundError as e:
        logger.error("config_not_found", path=str(path))
        raise click.ClickException(str(e))
    except PermissionError as e:
        logger.error("config_permission_error", path=str(path))
        raise click.ClickException(str(e))
    except ValueError as e:
        logger.error("config_validation_error", error=str(e))
        raise click.ClickException(f"Configuration validation failed:\n{e}")


def build_catalog(store: FragmentStore, templates_dir: str) -> TemplateCatalog:
    """Built-in templates followed by the workspace's template files."""
    catalog = TemplateCatalog(BUILTIN_TEMPLATES)
    try:
        catalog.load_directory(store.paths.templates_dir(templates_dir))
    except ValueError as e:
        logger.error("templates_load_failed", error=str(e))
        raise click.ClickException(str(e))
    return catalog


def open_workspace(root: Path) -> tuple[FragmentStore, WorkspaceDocumentStore]:
    """
    Create the document and fragment stores for a workspace and parse it.

    Raises:
        click.ClickException: If the workspace is invalid or cannot be parsed
    """
    documents = WorkspaceDocumentStore()
    try:
        store = FragmentStore(root, documents)
        store.reparse()
    except ValueError as e:
        logger.error("workspace_parse_failed", root=str(root), error=str(e))
        raise click.ClickException(str(e))
    return store, documents


def _workspace_settings(workspace: Optional[Path]) -> WorkspaceConfig:
    if workspace is not None:
        return WorkspaceConfig(root=str(workspace))
    return load_config().workspace


def _resolve_for_display(store: FragmentStore, identifier: str) -> Fragment:
    try:
        return store.resolve_fragment(identifier)
    except AmbiguousFragmentError as e:
        candidates = "\n".join(f"  {o.description}" for o in e.options if o.value is not None)
        raise click.ClickException(f"Several specifications reference {e.path}:\n{candidates}")
    except FragmentNotFoundError as e:
        raise click.ClickException(str(e))


workspace_option = click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Workspace directory (overrides workspace.root from the config file)",
)


@click.group()
@click.version_option(version=__version__, prog_name="specprompt")
def cli():
    """specprompt: Run LLM prompt templates against GPSpec specification fragments."""
    configure_logging()


@cli.command()
@click.argument("identifier", required=False)
@click.option("--template", "-t", "template_id", help="Template id (skips the picker)")
@workspace_option
def run(identifier: Optional[str], template_id: Optional[str], workspace: Optional[Path]):
    """
    Run a template against a fragment, then refine it in a loop.

    IDENTIFIER is a .gpspec.md file, a fragment id, or a file referenced by
    a specification. After each answer, type a note to add it to the
    specification and run the same template again; an empty note exits.

    Examples:
        specprompt run docs/app.gpspec.md
        specprompt run src/util.ts --template code-generate
    """
    logger.info("run_command_started", identifier=identifier, template=template_id)

    config = load_config()
    if workspace is not None:
        config = config.with_workspace_root(workspace)

    try:
        asyncio.run(_run_session(config, identifier, template_id))
    except KeyboardInterrupt:
        logger.info("run_command_interrupted")
        raise click.Abort()

    logger.info("run_command_completed")


async def _run_session(config: Config, identifier: Optional[str], template_id: Optional[str]) -> None:
    ui = ConsoleUI(console)
    store, documents = open_workspace(Path(config.workspace.root))
    catalog = build_catalog(store, config.workspace.templates_dir)

    template = None
    if template_id:
        try:
            template = catalog.get_template(template_id)
        except KeyError as e:
            raise click.ClickException(str(e.args[0]))

    # Treat the target like a document open in an editor
    if identifier and Path(identifier).is_file():
        documents.open(identifier)

    backend = LLMGenerationBackend(
        LLMClient(config.llm),
        store.document_for,
        system_prompt=catalog.get_template(SYSTEM_TEMPLATE_ID).text,
        temperature=config.generation.temperature,
        max_retries=config.generation.max_retries,
    )
    controller = RequestController(
        store,
        backend,
        cancel_timeout=config.generation.cancel_timeout,
        on_output=lambda request, chunk: ui.write_output(chunk),
    )
    commands = FragmentCommands(
        store,
        catalog,
        controller,
        documents,
        ui,
        templates_dir=store.paths.templates_dir(config.workspace.templates_dir),
    )

    request = await commands.prompt(identifier, template)
    while request is not None:
        console.rule(f"[bold]{request.label}[/bold]: {request.fragment.title}")
        response = await controller.wait()
        console.print()
        if response is not None and response.error:
            await ui.notify("error", f"Request failed: {response.error}")
        request = await commands.refine()


@cli.command()
@click.argument("identifier")
@workspace_option
def templates(identifier: str, workspace: Optional[Path]):
    """
    List the templates applicable to a fragment, grouped.

    Examples:
        specprompt templates docs/app.gpspec.md
    """
    settings = _workspace_settings(workspace)
    store, _ = open_workspace(Path(settings.root))
    catalog = build_catalog(store, settings.templates_dir)
    fragment = _resolve_for_display(store, identifier)

    table = Table(title=f"Templates for {fragment.title}")
    table.add_column("Group", style="magenta")
    table.add_column("Id", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Description", style="dim")

    group = None
    for item in catalog.present(catalog.applicable_templates(fragment)):
        if item.kind != "template":
            continue
        table.add_row(
            item.group if item.group != group else "",
            item.template.id,
            item.label,
            item.template.description or "",
        )
        group = item.group

    console.print(table)


@cli.command()
@workspace_option
def fragments(workspace: Optional[Path]):
    """List every fragment of the workspace with its id and location."""
    store, _ = open_workspace(Path(_workspace_settings(workspace).root))
    root = store.paths.root

    table = Table(title=f"Fragments in {root}")
    table.add_column("Id", style="cyan", overflow="fold")
    table.add_column("Title", style="bold")
    table.add_column("Location", style="dim")

    for document in store.project.root_files:
        for fragment in document.fragments:
            try:
                location = Path(document.filename).relative_to(root)
            except ValueError:
                location = Path(document.filename)
            indent = "  " * (fragment.level - 1)
            table.add_row(
                fragment.full_id,
                f"{indent}{fragment.title}",
                f"{location}:{fragment.start_pos[0] + 1}",
            )

    console.print(table)


@cli.command()
@click.argument("identifier")
@workspace_option
def show(identifier: str, workspace: Optional[Path]):
    """
    Show where a fragment is and print its text.

    IDENTIFIER is a fragment id or a .gpspec.md file.
    """
    store, _ = open_workspace(Path(_workspace_settings(workspace).root))
    try:
        fragment = store.lookup(identifier)
    except FragmentNotFoundError as e:
        raise click.ClickException(str(e))

    asyncio.run(ConsoleUI(console).reveal_position(fragment.filename, fragment.start_pos))
    console.print(store.document_for(fragment).span_text(fragment), markup=False, highlight=False)


def main():
    """Main entry point for setuptools console script."""
    cli()


if __name__ == "__main__":
    main()
