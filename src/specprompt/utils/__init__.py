"""Utility modules for specprompt."""
