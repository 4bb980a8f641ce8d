"""Paged queries over enrollment records.

The service returns at most one page per request. A page's
``x-ms-continuation`` response header is the token for the next page and
``x-ms-item-type`` names the record type (``enrollment``,
``enrollmentGroup`` or ``deviceRegistration``).

Usage::

    query = client.create_individual_enrollment_query(
        QuerySpecification(query="SELECT * FROM enrollments"), page_size=50
    )
    while query.has_more_results:
        page = query.next()
        for enrollment in page.items:
            ...

or simply ``for enrollment in query: ...``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from iot_provisioning.core.exceptions import ContractError

logger = logging.getLogger(__name__)

#: Fetches one page: ``fetch(continuation_token) -> (raw items, next token, item type)``.
PageFetcher = Callable[[str | None], tuple[list[Any], str | None, str | None]]


@dataclass(frozen=True, slots=True)
class QueryResult:
    """One page of query results.

    Attributes:
        items: Records of this page, parsed to models.
        continuation_token: Token of the next page, ``None`` on the last one.
        item_type: Record type reported by the service.
    """

    items: list[Any] = field(default_factory=list)
    continuation_token: str | None = None
    item_type: str | None = None


class Query:
    """Iterates the pages of a service query.

    Args:
        fetch_page: Performs the request for one page.
        parse_item: Turns a raw JSON item into a model.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        parse_item: Callable[[dict[str, Any]], Any] | None = None,
    ) -> None:
        self._fetch_page = fetch_page
        self._parse_item = parse_item
        self._continuation_token: str | None = None
        self._has_more_results = True

    @property
    def has_more_results(self) -> bool:
        """``True`` until a page without a continuation token was fetched."""
        return self._has_more_results

    @property
    def continuation_token(self) -> str | None:
        return self._continuation_token

    def next(self, continuation_token: str | None = None) -> QueryResult:
        """Fetch the next page.

        Args:
            continuation_token: Resume from this token instead of the one
                returned by the previous page.
        """
        token = continuation_token if continuation_token is not None else self._continuation_token
        raw_items, next_token, item_type = self._fetch_page(token)
        if not isinstance(raw_items, list):
            msg = f"Query response must be a JSON array, got {type(raw_items).__name__}"
            raise ContractError(msg, stage="service")

        items = [self._parse_item(item) for item in raw_items] if self._parse_item else raw_items
        self._continuation_token = next_token or None
        self._has_more_results = self._continuation_token is not None
        logger.debug(
            "Query page fetched | items=%d | item_type=%s | more=%s",
            len(items),
            item_type,
            self._has_more_results,
        )
        return QueryResult(items=items, continuation_token=self._continuation_token, item_type=item_type)

    def __iter__(self) -> Iterator[Any]:
        while self._has_more_results:
            yield from self.next().items
