"""Enrollment management (service side).

- ProvisioningServiceClient: CRUD, queries and bulk operations on enrollment records
- Query / QueryResult: paged query results
"""

from iot_provisioning.service.client import ProvisioningServiceClient
from iot_provisioning.service.query import Query, QueryResult

__all__ = [
    "ProvisioningServiceClient",
    "Query",
    "QueryResult",
]
