"""Generic tag-lookup adapter over boto3 client operations.

One :class:`TagLookupAdapter` is configured per resource type with the
client operation to call and a list of :class:`ParamBinding` values that
fill the request.  Every adapter exposes the same three steps:

    build_request(resource_id) -> dict
    invoke(request)            -> dict
    extract_tags(response)     -> dict[str, str]

and :meth:`TagLookupAdapter.lookup` chains them.  The operation and its
parameter names are checked against the client's service model when the
adapter is built, so a bad registry entry fails at startup rather than on
the first resource of that type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from stack_tag_audit.errors import AdapterConfigurationError, TagsNotSupportedError
from stack_tag_audit.extraction import extract_tags

logger = logging.getLogger(__name__)


def physical_id(resource_id: str) -> str:
    """Value source that passes the physical resource id through unchanged."""
    return resource_id


@dataclass(frozen=True)
class ParamBinding:
    """A request field and where its value comes from.

    ``value`` is either a constant or a callable applied to the resource id
    (``physical_id``, an ARN builder, a filter builder, ...).
    """

    field: str
    value: Any

    def resolve(self, resource_id: str) -> Any:
        if callable(self.value):
            return self.value(resource_id)
        return self.value


def _operation_input_members(client: Any, operation: str) -> set[str]:
    """Return the input field names of *operation*, validating it exists."""
    api_name = client.meta.method_to_api_mapping.get(operation)
    if api_name is None:
        service = client.meta.service_model.service_name
        raise AdapterConfigurationError(f"{service} client has no operation '{operation}'")
    input_shape = client.meta.service_model.operation_model(api_name).input_shape
    if input_shape is None:
        return set()
    return set(input_shape.members)


class TagLookupAdapter:
    """Calls one client operation and extracts the tags from its response."""

    def __init__(
        self,
        client: Any,
        operation: str,
        *bindings: ParamBinding,
        extractor: Callable[[Any], dict[str, str]] = extract_tags,
    ) -> None:
        members = _operation_input_members(client, operation)
        usable: list[ParamBinding] = []
        for binding in bindings:
            if binding.field in members:
                usable.append(binding)
            else:
                logger.warning(
                    "Ignoring parameter %s: not an input of %s", binding.field, operation
                )

        self._client = client
        self.operation = operation
        self.bindings: tuple[ParamBinding, ...] = tuple(usable)
        self._extractor = extractor

    def __repr__(self) -> str:
        fields = ", ".join(b.field for b in self.bindings)
        return f"TagLookupAdapter({self.operation}({fields}))"

    def build_request(self, resource_id: str) -> dict[str, Any]:
        return {b.field: b.resolve(resource_id) for b in self.bindings}

    def invoke(self, request: dict[str, Any]) -> Any:
        return getattr(self._client, self.operation)(**request)

    def extract_tags(self, response: Any) -> dict[str, str]:
        return self._extractor(response)

    def lookup(self, resource_id: str) -> dict[str, str]:
        """Fetch the tags of *resource_id*.

        Provider errors (``botocore.exceptions.ClientError``) propagate to
        the caller, which decides whether they are skippable.
        """
        request = self.build_request(resource_id)
        logger.debug("%s(%s)", self.operation, request)
        response = self.invoke(request)
        return self.extract_tags(response)


class UnsupportedTagLookup:
    """Sentinel for resource types that categorically do not support tags."""

    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type

    def __repr__(self) -> str:
        return f"UnsupportedTagLookup({self.resource_type})"

    def lookup(self, resource_id: str) -> dict[str, str]:
        raise TagsNotSupportedError(self.resource_type)
