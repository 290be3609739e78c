"""Exception hierarchy for the tag audit."""

from __future__ import annotations


class TagAuditError(Exception):
    """Base class for every error raised by stack-tag-audit."""


class BootstrapError(TagAuditError):
    """Credentials, region or account identity could not be resolved."""


class AdapterConfigurationError(TagAuditError):
    """A tag lookup was wired to an operation it cannot call."""


class TagsNotSupportedError(TagAuditError):
    """The resource type does not support tagging."""

    code = "TagsNotSupportedException"

    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type
        super().__init__(f"{resource_type} does not support tagging")


class NotImplementedLookupError(TagAuditError):
    """No tag lookup is registered for the resource type."""

    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type
        super().__init__(f"{resource_type} resource not implemented")


class TagExtractionError(TagAuditError):
    """A response did not carry a readable tag collection."""
