from __future__ import annotations

from rest_framework.pagination import PageNumberPagination


class DefaultPagination(PageNumberPagination):
    """Page-number pagination for every scoped list endpoint.

    Responses use the ``{"count", "next", "previous", "results"}``
    envelope. Clients may pass ``?page_size=N``; the cap keeps a single
    page of submissions or materials bounded.
    """

    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100
