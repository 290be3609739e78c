"""Shared test fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from stack_tag_audit.aws import AwsContext

REGION = "eu-west-1"
ACCOUNT = "123456789012"

# Every request field the default registry binds.
_KNOWN_INPUT_FIELDS = {
    "Resource",
    "ResourceId",
    "ResourceType",
    "Id",
    "Bucket",
    "RoleName",
    "ResourceArn",
    "ResourceARN",
    "DeliveryStreamName",
    "logGroupName",
    "KeyId",
    "Filters",
}


def fake_client(
    operations: dict[str, list[str]] | None = None,
    service_name: str = "fake",
) -> MagicMock:
    """A MagicMock boto3 client whose service model knows *operations*.

    ``operations`` maps the snake_case method name to its input field
    names.  When omitted, every operation exists and accepts every field
    the default registry uses.
    """
    client = MagicMock()
    client.meta.service_model.service_name = service_name

    if operations is None:
        client.meta.method_to_api_mapping.get.side_effect = lambda op: op
        members: dict[str, set[str]] = {}
    else:
        client.meta.method_to_api_mapping = {op: op for op in operations}
        members = {op: set(fields) for op, fields in operations.items()}

    def _operation_model(api_name: str) -> MagicMock:
        model = MagicMock()
        model.input_shape.members = members.get(api_name, _KNOWN_INPUT_FIELDS)
        return model

    client.meta.service_model.operation_model.side_effect = _operation_model
    return client


@pytest.fixture()
def aws_ctx() -> AwsContext:
    """An AwsContext backed by permissive fake clients, one per service."""
    clients: dict[str, MagicMock] = {}

    def _client(service_name: str, **kwargs: Any) -> MagicMock:
        if service_name not in clients:
            clients[service_name] = fake_client(service_name=service_name)
        return clients[service_name]

    session = MagicMock()
    session.region_name = REGION
    session.client.side_effect = _client
    return AwsContext(session, REGION, ACCOUNT)


@pytest.fixture()
def make_client() -> Any:
    """Factory fixture for :func:`fake_client`."""
    return fake_client
