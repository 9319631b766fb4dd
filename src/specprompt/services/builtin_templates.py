"""Templates shipped with specprompt.

Workspace templates loaded from the templates directory are registered after
these, so a workspace file with the same id overrides a built-in.
"""

from specprompt.models.template import PromptTemplate


SYSTEM_TEMPLATE_ID = "system"

SYSTEM_PROMPT = """\
You are an expert software engineer helping a developer maintain a
specification written as a Markdown outline. Each heading is a fragment of
the specification. Answer in Markdown. Keep answers focused on the fragment
you are given and the files it references.
"""


BUILTIN_TEMPLATES: list[PromptTemplate] = [
    PromptTemplate(
        id=SYSTEM_TEMPLATE_ID,
        title="System prompt",
        description="Sent with every request",
        text=SYSTEM_PROMPT,
        system=True,
    ),
    PromptTemplate(
        id="spec-review",
        title="Review specification",
        description="Point out gaps, contradictions and unclear requirements",
        group="Specification",
        text="""\
Review the following specification fragment "$title" from $file.
List missing requirements, contradictions and ambiguous statements as a
bulleted list, most important first.

$text
""",
    ),
    PromptTemplate(
        id="spec-refine",
        title="Refine specification",
        description="Rewrite the fragment with more precise requirements",
        group="Specification",
        text="""\
Rewrite the specification fragment "$title" so that every requirement is
precise and testable. Keep the heading structure. Return only the updated
Markdown.

$text
""",
    ),
    PromptTemplate(
        id="code-generate",
        title="Generate code",
        description="Update the referenced files to implement the fragment",
        group="Code",
        references=("*",),
        text="""\
Implement the specification fragment "$title" ($label).
Files referenced by the specification:
$references

Specification:
$text

For each file, return its complete updated content in a fenced code block
preceded by the file name.
""",
    ),
    PromptTemplate(
        id="test-generate",
        title="Generate tests",
        description="Write tests for the referenced source files",
        group="Code",
        references=("*.py", "*.ts", "*.js", "*.go", "*.rs", "*.java", "*.cs"),
        text="""\
Write unit tests for the source files referenced by "$title":
$references

The tests must check the behavior described here:
$text
""",
    ),
    PromptTemplate(
        id="summarize",
        title="Summarize",
        description="One-paragraph summary of the fragment",
        text="""\
Summarize the specification fragment "$title" in one short paragraph.

$text
""",
    ),
]
