"""Picker items: a tagged union of template, action and plain option choices.

Callers branch on ``kind``; an ActionItem never carries a template and a
TemplateItem never triggers an action.
"""

from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from specprompt.models.template import PromptTemplate


CREATE_TEMPLATE_ACTION = "create"
DISCUSSIONS_ACTION = "discussions"

DISCUSSIONS_URL = "https://github.com/microsoft/gptools/discussions"


@dataclass(frozen=True)
class TemplateItem:
    """A selectable template, shown under its group heading."""

    template: PromptTemplate
    kind: Literal["template"] = "template"

    @property
    def label(self) -> str:
        return self.template.title

    @property
    def description(self) -> str:
        return f"{self.template.id} {self.template.description or ''}".strip()

    @property
    def group(self) -> Optional[str]:
        return self.template.group


@dataclass(frozen=True)
class ActionItem:
    """An escape-hatch action appended after all templates."""

    action: Literal["create", "discussions"]
    label: str
    description: str = ""
    kind: Literal["action"] = "action"

    @property
    def group(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class OptionItem:
    """A plain choice carrying an arbitrary value (None for "create new")."""

    label: str
    value: Any = None
    description: str = ""
    kind: Literal["option"] = "option"

    @property
    def group(self) -> Optional[str]:
        return None


PickItem = Union[TemplateItem, ActionItem, OptionItem]


def escape_actions() -> list[ActionItem]:
    """The two actions that close every template picker."""
    return [
        ActionItem(
            action=CREATE_TEMPLATE_ACTION,
            label="Create a new GPTool script...",
            description="Create a new gptool template in the current workspace.",
        ),
        ActionItem(
            action=DISCUSSIONS_ACTION,
            label="View GPTools Discussions...",
            description="Open the GPTools community discussions.",
        ),
    ]
