"""Data models for specprompt."""

from specprompt.models.template import PromptTemplate
from specprompt.models.request import AiRequest, AiResponse, RequestState
from specprompt.models.pick import ActionItem, OptionItem, PickItem, TemplateItem

__all__ = [
    "ActionItem",
    "AiRequest",
    "AiResponse",
    "OptionItem",
    "PickItem",
    "PromptTemplate",
    "RequestState",
    "TemplateItem",
]
