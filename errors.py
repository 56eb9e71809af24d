"""
Exception hierarchy for todo-rank.
All errors raised by the pipeline inherit from TodoRankError so the CLI has a single catch point.
"""


class TodoRankError(Exception):
    """Base exception for all todo-rank errors."""


class FetchError(TodoRankError):
    """Failure reaching, reading or parsing the GitLab API."""


class ConfigError(TodoRankError):
    """Missing or invalid configuration."""
