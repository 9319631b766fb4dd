"""PromptTemplate model: a named generation recipe for fragments."""

import fnmatch
import os
import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from gpspec_outline import Fragment


DEFAULT_GROUP = "General"


class PromptTemplate(BaseModel):
    """A named, categorized transformation applicable to certain fragments.

    Applicability is data, not code: a template accepts a fragment when
    every configured condition holds.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Unique template identifier"
    )

    title: str = Field(
        ...,
        min_length=1,
        description="Human-readable title shown in the picker"
    )

    description: Optional[str] = Field(
        default=None,
        description="Optional longer description"
    )

    group: str = Field(
        default=DEFAULT_GROUP,
        description="Display category"
    )

    text: str = Field(
        default="",
        description="Prompt body; $title, $text, $file, $references and $label are substituted"
    )

    system: bool = Field(
        default=False,
        description="System templates are never offered for fragments"
    )

    references: tuple[str, ...] = Field(
        default=(),
        description="Glob patterns; the fragment must reference a file whose name matches one"
    )

    title_pattern: Optional[str] = Field(
        default=None,
        description="Regex searched in the fragment title"
    )

    root_only: bool = Field(
        default=True,
        description="Only accept root fragments"
    )

    source: Optional[str] = Field(
        default=None,
        description="File the template was loaded from (None for built-ins)"
    )

    @field_validator('title_pattern')
    @classmethod
    def validate_title_pattern(cls, v: Optional[str]) -> Optional[str]:
        """Reject patterns that do not compile."""
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid title_pattern {v!r}: {e}") from e
        return v

    def is_applicable(self, fragment: Fragment) -> bool:
        """Check whether this template can be applied to a fragment.

        Args:
            fragment: Candidate fragment

        Returns:
            True if every applicability condition holds
        """
        if self.system:
            return False
        if self.root_only and not fragment.is_root:
            return False
        if self.title_pattern and not re.search(self.title_pattern, fragment.title):
            return False
        if self.references:
            names = [os.path.basename(ref) for ref in fragment.references]
            if not any(fnmatch.fnmatch(name, pattern) for name in names for pattern in self.references):
                return False
        return True

    model_config = {"frozen": True}
