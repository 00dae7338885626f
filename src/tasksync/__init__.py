"""tasksync - bidirectional sync between local task documents and GitHub issues."""

__version__ = "0.1.0"
