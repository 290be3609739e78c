"""Resource discovery for CloudFormation stack families.

Lists the stacks whose name contains a search term, walks their resources
and expands Service Catalog products into the resources of the stacks
they provisioned, recursively.  The result is one flat list in discovery
order: stack order, then resource order, then depth-first expansion.

The same physical resource is reported once per path that reaches it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from stack_tag_audit.config import DEFAULT_MAX_DEPTH, INDIRECTION_RESOURCE_TYPES
from stack_tag_audit.models import DiscoveredResource

logger = logging.getLogger(__name__)

STACK_STATUS_FILTER: list[str] = ["CREATE_COMPLETE", "UPDATE_COMPLETE"]


class StackResourceResolver:
    """Flattens the resources reachable from stacks matching a search term.

    Parameters
    ----------
    cloudformation : botocore client
        ``cloudformation`` client used to list stacks and their resources.
    servicecatalog : botocore client
        ``servicecatalog`` client used to find provisioned products.
    indirection_types : iterable of str
        Resource types that point at another deployed stack.
    max_depth : int
        Deepest level of nested expansion before it is cut off.
    """

    def __init__(
        self,
        cloudformation: Any,
        servicecatalog: Any,
        indirection_types: Iterable[str] = INDIRECTION_RESOURCE_TYPES,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._cf = cloudformation
        self._sc = servicecatalog
        self.indirection_types = frozenset(indirection_types)
        self.max_depth = max_depth
        self.anomalies: list[str] = []

    # ── Provider calls ────────────────────────────────────────────────

    def list_stacks(self, search: str) -> list[dict[str, Any]]:
        """Healthy stacks whose name contains *search* (case-sensitive)."""
        stacks: list[dict[str, Any]] = []
        paginator = self._cf.get_paginator("list_stacks")
        for page in paginator.paginate(StackStatusFilter=STACK_STATUS_FILTER):
            for summary in page.get("StackSummaries", []):
                if search in summary.get("StackName", ""):
                    stacks.append(summary)
        logger.debug("Stacks matching %r: %d", search, len(stacks))
        return stacks

    def list_stack_resources(self, stack_name: str) -> Iterator[DiscoveredResource]:
        paginator = self._cf.get_paginator("list_stack_resources")
        for page in paginator.paginate(StackName=stack_name):
            for res in page.get("StackResourceSummaries", []):
                yield DiscoveredResource(
                    resource_type=res.get("ResourceType", ""),
                    logical_id=res.get("LogicalResourceId", ""),
                    physical_id=res.get("PhysicalResourceId", ""),
                    owner_stack_name=stack_name,
                )

    def search_provisioned_products(self, product_id: str) -> list[dict[str, Any]]:
        """Provisioned products in the caller's own account matching *product_id*."""
        products: list[dict[str, Any]] = []
        token: str | None = None
        while True:
            kwargs: dict[str, Any] = {
                "AccessLevelFilter": {"Key": "Account", "Value": "self"},
                "Filters": {"SearchQuery": [product_id]},
            }
            if token:
                kwargs["PageToken"] = token
            resp = self._sc.search_provisioned_products(**kwargs)
            products.extend(resp.get("ProvisionedProducts", []))
            token = resp.get("NextPageToken")
            if not token:
                break
        return products

    # ── Discovery ─────────────────────────────────────────────────────

    def discover(self, search: str) -> list[DiscoveredResource]:
        """Return every resource reachable from stacks matching *search*."""
        resources = self._discover(search, depth=0, path=())
        logger.info("Discovered %d resources for %r", len(resources), search)
        return resources

    def _anomaly(self, message: str) -> None:
        logger.warning(message)
        self.anomalies.append(message)

    def _discover(self, search: str, depth: int, path: tuple[str, ...]) -> list[DiscoveredResource]:
        resources: list[DiscoveredResource] = []
        for stack in self.list_stacks(search):
            stack_name = stack["StackName"]
            if stack_name in path:
                self._anomaly(
                    f"Cycle detected: {' -> '.join(path + (stack_name,))}; skipping {stack_name}"
                )
                continue

            for resource in self.list_stack_resources(stack_name):
                if resource.resource_type not in self.indirection_types:
                    resources.append(resource)
                    continue

                if depth >= self.max_depth:
                    self._anomaly(
                        f"Max depth {self.max_depth} reached at {stack_name}/"
                        f"{resource.logical_id} ({resource.physical_id}); not expanded"
                    )
                    continue

                for product in self.search_provisioned_products(resource.physical_id):
                    logger.debug(
                        "Expanding %s -> provisioned product %s",
                        resource.physical_id, product["Id"],
                    )
                    resources.extend(
                        self._discover(product["Id"], depth + 1, path + (stack_name,))
                    )
        return resources
