"""Template catalog: registration, applicability and picker presentation."""

from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import ValidationError

from gpspec_outline import Fragment

from specprompt.models.pick import PickItem, TemplateItem, escape_actions
from specprompt.models.template import PromptTemplate
from specprompt.utils.ids import slugify
from specprompt.utils.logging import get_logger


logger = get_logger(__name__)

TEMPLATE_SUFFIX = ".gptool.yaml"


class TemplateCatalog:
    """
    Ordered collection of prompt templates.

    Declaration order matters: applicable_templates() and present() list
    templates in the order they were registered. Re-registering an id
    replaces the template in place.

    Example:
        >>> catalog = TemplateCatalog(BUILTIN_TEMPLATES)
        >>> catalog.load_directory(Path(".gptools"))
        >>> items = catalog.present(catalog.applicable_templates(fragment))
    """

    def __init__(self, templates: Iterable[PromptTemplate] = ()):
        self._templates: dict[str, PromptTemplate] = {}
        for template in templates:
            self.register(template)

    @property
    def templates(self) -> list[PromptTemplate]:
        """All templates in declaration order."""
        return list(self._templates.values())

    def register(self, template: PromptTemplate) -> None:
        """Add a template, replacing one with the same id in place."""
        self._templates[template.id] = template

    def get_template(self, template_id: str) -> PromptTemplate:
        """
        Get a template by id.

        Raises:
            KeyError: If no template has that id
        """
        try:
            return self._templates[template_id]
        except KeyError:
            raise KeyError(f"Unknown template: {template_id}") from None

    def applicable_templates(self, fragment: Fragment) -> list[PromptTemplate]:
        """
        Templates whose applicability predicate accepts the fragment.

        Args:
            fragment: Candidate fragment

        Returns:
            Accepting templates in declaration order
        """
        return [t for t in self._templates.values() if t.is_applicable(fragment)]

    def present(self, templates: list[PromptTemplate]) -> list[PickItem]:
        """
        Build picker items for a list of templates.

        Templates are grouped by their group label, groups in first-seen
        order and templates in the given order within each group. The
        "create" and "discussions" actions always close the list, so the
        result is never empty.

        Args:
            templates: Templates to present (usually applicable_templates())

        Returns:
            Pick items
        """
        groups: dict[str, list[PromptTemplate]] = {}
        for template in templates:
            groups.setdefault(template.group, []).append(template)

        items: list[PickItem] = []
        for members in groups.values():
            items.extend(TemplateItem(template=t) for t in members)
        items.extend(escape_actions())
        return items

    def load_directory(self, directory: Path) -> int:
        """
        Load workspace templates from *.gptool.yaml files.

        The template id is the file name without its suffix. Files are
        loaded in name order. A missing directory loads nothing.

        Args:
            directory: Templates directory

        Returns:
            Number of templates loaded

        Raises:
            ValueError: If a file is not valid YAML or not a valid template
        """
        directory = Path(directory).expanduser()
        if not directory.is_dir():
            logger.debug("templates_directory_missing", path=str(directory))
            return 0

        count = 0
        for path in sorted(directory.glob(f"*{TEMPLATE_SUFFIX}")):
            self.register(self._load_file(path))
            count += 1

        logger.info("templates_loaded", path=str(directory), count=count)
        return count

    def create_template(self, directory: Path, title: str, group: Optional[str] = None) -> Path:
        """
        Write a YAML skeleton for a new workspace template and register it.

        Args:
            directory: Templates directory (created if missing)
            title: Human-readable title; the id is derived from it
            group: Optional display category

        Returns:
            Path of the new file

        Raises:
            FileExistsError: If a template file with that id already exists
            ValueError: If no id can be derived from the title
        """
        template_id = slugify(title)
        directory = Path(directory).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{template_id}{TEMPLATE_SUFFIX}"
        if path.exists():
            raise FileExistsError(f"Template already exists: {path}")

        data = {
            "title": title,
            "description": "",
            "group": group or "Workspace",
            "text": "Describe what to do with \"$title\".\n\n$text\n",
        }
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")

        self.register(self._load_file(path))
        logger.info("template_created", path=str(path), template=template_id)
        return path

    def _load_file(self, path: Path) -> PromptTemplate:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid template YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Template file is not a mapping: {path}")

        data["id"] = path.name[: -len(TEMPLATE_SUFFIX)]
        data["source"] = str(path)

        try:
            return PromptTemplate(**data)
        except ValidationError as e:
            raise ValueError(f"Invalid template {path}: {e}") from e
