"""AWS session bootstrap and identifier construction.

Resolves the region, partition and account identity once at startup and
hands out cached boto3 clients.  Failure to obtain any of these is fatal.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from stack_tag_audit.errors import BootstrapError

logger = logging.getLogger(__name__)

DEFAULT_PARTITION = "aws"


# ══════════════════════════════════════════════════════════════════════════════
#  SESSION
# ══════════════════════════════════════════════════════════════════════════════

def _get_boto3_session(
    region: str = "",
    profile: str = "",
) -> Any:
    """Create a boto3 session for the given region / profile."""
    kwargs: dict[str, str] = {}
    if region:
        kwargs["region_name"] = region
    if profile:
        kwargs["profile_name"] = profile
    return boto3.Session(**kwargs)


class AwsContext:
    """Region, account identity and authenticated clients for one run.

    Parameters
    ----------
    session : boto3.Session
        Session used to create every client.
    region : str
        Region all clients are pinned to.
    account : str
        Caller account id (from STS).
    partition : str
        ARN partition, ``aws`` outside China / GovCloud.
    """

    def __init__(self, session: Any, region: str, account: str, partition: str = DEFAULT_PARTITION) -> None:
        self.session = session
        self.region = region
        self.account = account
        self.partition = partition
        self._clients: dict[str, Any] = {}

    def client(self, service_name: str) -> Any:
        if service_name not in self._clients:
            self._clients[service_name] = self.session.client(service_name, region_name=self.region)
        return self._clients[service_name]

    # ── Identifier construction schemes ───────────────────────────────

    def arn_slash(self, service: str, kind: str) -> Callable[[str], str]:
        """``arn:partition:service:region:account:kind/id``"""
        prefix = f"arn:{self.partition}:{service}:{self.region}:{self.account}:{kind}"

        def _build(resource_id: str) -> str:
            return f"{prefix}/{resource_id}"

        return _build

    def arn_colon(self, service: str, kind: str) -> Callable[[str], str]:
        """``arn:partition:service:region:account:kind:id``"""
        prefix = f"arn:{self.partition}:{service}:{self.region}:{self.account}:{kind}"

        def _build(resource_id: str) -> str:
            return f"{prefix}:{resource_id}"

        return _build


def get_account(session: Any, region: str) -> str:
    """Return the caller's account id via STS ``GetCallerIdentity``."""
    sts = session.client("sts", region_name=region)
    return sts.get_caller_identity()["Account"]


def bootstrap(region: str = "", profile: str = "") -> AwsContext:
    """Build an :class:`AwsContext`, raising :class:`BootstrapError` on any failure."""
    try:
        session = _get_boto3_session(region=region, profile=profile)
        effective_region = region or session.region_name
        if not effective_region:
            raise BootstrapError(
                "No AWS region configured. Pass --region or set AWS_REGION."
            )
        account = get_account(session, effective_region)
        partition = session.get_partition_for_region(effective_region) or DEFAULT_PARTITION
    except (BotoCoreError, ClientError) as exc:
        raise BootstrapError(f"Unable to load AWS configuration: {exc}") from exc

    logger.info("AWS session ready: account %s in %s (%s)", account, effective_region, partition)
    return AwsContext(session, effective_region, account, partition)
