from __future__ import annotations

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 500


def paginate(
    request,
    queryset,
    serializer_class,
    *,
    paginator: PageNumberPagination | None = None,
    context_for_page=None,
) -> Response:
    """
    Shared pagination helper with a stable contract:
      { count, next, previous, results }

    context_for_page(rows) -> dict lets the caller compute per-page serializer
    context (e.g. resolved prices) with one batched lookup per page.
    """
    p = paginator or DefaultPagination()
    page = p.paginate_queryset(queryset, request)
    rows = page if page is not None else list(queryset)

    context = {"request": request}
    if context_for_page is not None:
        context.update(context_for_page(rows))

    ser = serializer_class(rows, many=True, context=context)
    if page is not None:
        return p.get_paginated_response(ser.data)
    return Response(ser.data)
