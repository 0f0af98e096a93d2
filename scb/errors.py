from __future__ import annotations


class ConfigError(ValueError):
    """An input combination or configuration source that cannot be used.

    Raised before any resource is planned or any node boots; never retried.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict[str, str | None]:
        return {"error": type(self).__name__, "field": self.field, "message": self.message}


class TopologyError(ConfigError):
    """Role counts that would produce an empty or negative capacity."""


class TemplateError(ConfigError):
    """Missing base template or malformed overlay document."""


class SupervisorError(RuntimeError):
    """Fatal to a supervisor invocation (e.g. unreadable configuration file)."""
