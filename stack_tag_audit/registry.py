"""Registry mapping CloudFormation resource types to tag lookups.

Built once at startup from the live :class:`~stack_tag_audit.aws.AwsContext`
and read-only afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Callable, Union

from stack_tag_audit.adapter import ParamBinding, TagLookupAdapter, UnsupportedTagLookup, physical_id
from stack_tag_audit.aws import AwsContext
from stack_tag_audit.config import DEFAULT_CUSTOM_RESOURCE_PREFIX

logger = logging.getLogger(__name__)

TagLookup = Union[TagLookupAdapter, UnsupportedTagLookup]


class TagLookupRegistry:
    """Immutable ``resource type -> tag lookup`` table.

    ``resolve`` returns ``None`` for types the registry knows nothing
    about.  Types starting with the custom-resource prefix always resolve
    to an :class:`UnsupportedTagLookup`, whether registered or not.
    """

    def __init__(
        self,
        lookups: Mapping[str, TagLookup],
        custom_resource_prefix: str = DEFAULT_CUSTOM_RESOURCE_PREFIX,
    ) -> None:
        self._lookups: Mapping[str, TagLookup] = MappingProxyType(dict(lookups))
        self.custom_resource_prefix = custom_resource_prefix

    def __len__(self) -> int:
        return len(self._lookups)

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._lookups

    def is_custom(self, resource_type: str) -> bool:
        return resource_type.startswith(self.custom_resource_prefix)

    def resolve(self, resource_type: str) -> TagLookup | None:
        if self.is_custom(resource_type):
            return UnsupportedTagLookup(resource_type)
        return self._lookups.get(resource_type)

    def supported_types(self) -> list[str]:
        return sorted(t for t, lk in self._lookups.items() if isinstance(lk, TagLookupAdapter))

    def unsupported_types(self) -> list[str]:
        return sorted(t for t, lk in self._lookups.items() if isinstance(lk, UnsupportedTagLookup))


# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULT TABLE
# ══════════════════════════════════════════════════════════════════════════════

# Resource types that cannot carry tags at all.
UNTAGGABLE_RESOURCE_TYPES: list[str] = [
    "AWS::Lambda::Permission",
    "AWS::ServiceCatalog::LaunchRoleConstraint",
    "AWS::ServiceCatalog::PortfolioPrincipalAssociation",
    "AWS::ServiceCatalog::PortfolioProductAssociation",
    "AWS::ServiceCatalog::TagOptionAssociation",
    "AWS::ServiceCatalog::TagOption",
    "AWS::S3::BucketPolicy",
    "AWS::IAM::InstanceProfile",
    "AWS::IAM::Policy",
    "AWS::SNS::Subscription",
    "AWS::SNS::TopicPolicy",
    "AWS::EC2::VPCEndpoint",
    "AWS::EC2::SubnetRouteTableAssociation",
    "AWS::EC2::SecurityGroupIngress",
    "AWS::Glue::Database",
    "AWS::Glue::SecurityConfiguration",
    "AWS::Batch::JobDefinition",
    "AWS::Batch::JobQueue",
    "AWS::Batch::ComputeEnvironment",
    "AWS::Logs::LogStream",
    "AWS::CloudFormation::Macro",
]

_EC2_TAGGED_TYPES: dict[str, str] = {
    "AWS::EC2::LaunchTemplate": "launch-template",
    "AWS::EC2::RouteTable": "route-table",
    "AWS::EC2::SecurityGroup": "security-group",
    "AWS::EC2::Subnet": "subnet",
    "AWS::EC2::VPC": "vpc",
}


def ec2_tag_filters(ec2_resource_type: str) -> Callable[[str], list[dict[str, Any]]]:
    """``DescribeTags`` filters scoped to one resource id of one EC2 type."""

    def _build(resource_id: str) -> list[dict[str, Any]]:
        return [
            {"Name": "resource-id", "Values": [resource_id]},
            {"Name": "resource-type", "Values": [ec2_resource_type]},
        ]

    return _build


def default_lookup_table(ctx: AwsContext) -> dict[str, TagLookup]:
    """Wire every known resource type to its boto3 tag operation."""
    P = ParamBinding
    table: dict[str, TagLookup] = {
        # Lambda
        "AWS::Lambda::Function": TagLookupAdapter(
            ctx.client("lambda"), "list_tags",
            P("Resource", ctx.arn_colon("lambda", "function")),
        ),
        # SSM
        "AWS::SSM::Parameter": TagLookupAdapter(
            ctx.client("ssm"), "list_tags_for_resource",
            P("ResourceId", physical_id),
            P("ResourceType", "Parameter"),
        ),
        # Service Catalog
        "AWS::ServiceCatalog::CloudFormationProduct": TagLookupAdapter(
            ctx.client("servicecatalog"), "describe_product_as_admin",
            P("Id", physical_id),
        ),
        "AWS::ServiceCatalog::Portfolio": TagLookupAdapter(
            ctx.client("servicecatalog"), "describe_portfolio",
            P("Id", physical_id),
        ),
        # S3
        "AWS::S3::Bucket": TagLookupAdapter(
            ctx.client("s3"), "get_bucket_tagging",
            P("Bucket", physical_id),
        ),
        # IAM
        "AWS::IAM::Role": TagLookupAdapter(
            ctx.client("iam"), "list_role_tags",
            P("RoleName", physical_id),
        ),
        # SNS (physical id is already the topic ARN)
        "AWS::SNS::Topic": TagLookupAdapter(
            ctx.client("sns"), "list_tags_for_resource",
            P("ResourceArn", physical_id),
        ),
        # Glue
        "AWS::Glue::Crawler": TagLookupAdapter(
            ctx.client("glue"), "get_tags",
            P("ResourceArn", ctx.arn_slash("glue", "crawler")),
        ),
        "AWS::Glue::Job": TagLookupAdapter(
            ctx.client("glue"), "get_tags",
            P("ResourceArn", ctx.arn_slash("glue", "job")),
        ),
        "AWS::Glue::Trigger": TagLookupAdapter(
            ctx.client("glue"), "get_tags",
            P("ResourceArn", ctx.arn_slash("glue", "trigger")),
        ),
        # DynamoDB
        "AWS::DynamoDB::Table": TagLookupAdapter(
            ctx.client("dynamodb"), "list_tags_of_resource",
            P("ResourceArn", ctx.arn_slash("dynamodb", "table")),
        ),
        # Kinesis Firehose
        "AWS::KinesisFirehose::DeliveryStream": TagLookupAdapter(
            ctx.client("firehose"), "list_tags_for_delivery_stream",
            P("DeliveryStreamName", physical_id),
        ),
        # CloudWatch Logs
        "AWS::Logs::LogGroup": TagLookupAdapter(
            ctx.client("logs"), "list_tags_log_group",
            P("logGroupName", physical_id),
        ),
        # CloudWatch
        "AWS::CloudWatch::Alarm": TagLookupAdapter(
            ctx.client("cloudwatch"), "list_tags_for_resource",
            P("ResourceARN", ctx.arn_colon("cloudwatch", "alarm")),
        ),
        # EventBridge
        "AWS::Events::Rule": TagLookupAdapter(
            ctx.client("events"), "list_tags_for_resource",
            P("ResourceARN", ctx.arn_slash("events", "rule")),
        ),
        # Config
        "AWS::Config::ConfigRule": TagLookupAdapter(
            ctx.client("config"), "list_tags_for_resource",
            P("ResourceArn", ctx.arn_slash("config", "config-rule")),
        ),
        # KMS
        "AWS::KMS::Key": TagLookupAdapter(
            ctx.client("kms"), "list_resource_tags",
            P("KeyId", physical_id),
        ),
    }

    ec2 = ctx.client("ec2")
    for cfn_type, ec2_type in _EC2_TAGGED_TYPES.items():
        table[cfn_type] = TagLookupAdapter(
            ec2, "describe_tags",
            P("Filters", ec2_tag_filters(ec2_type)),
        )

    for cfn_type in UNTAGGABLE_RESOURCE_TYPES:
        table[cfn_type] = UnsupportedTagLookup(cfn_type)

    return table


def build_default_registry(
    ctx: AwsContext,
    custom_resource_prefix: str = DEFAULT_CUSTOM_RESOURCE_PREFIX,
    extra: Iterable[tuple[str, TagLookup]] = (),
) -> TagLookupRegistry:
    """Build the registry for *ctx*, optionally extended with *extra* entries."""
    table = default_lookup_table(ctx)
    table.update(dict(extra))
    registry = TagLookupRegistry(table, custom_resource_prefix=custom_resource_prefix)
    logger.info(
        "Tag lookup registry: %d taggable, %d untaggable resource types",
        len(registry.supported_types()),
        len(registry.unsupported_types()),
    )
    return registry
