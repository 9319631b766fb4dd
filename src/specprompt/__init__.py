"""specprompt - Run LLM prompt templates against GPSpec specification fragments."""

__version__ = "0.1.0"
