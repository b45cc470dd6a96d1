# backend/pagination.py

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class ItemsPagination(PageNumberPagination):
    """
    List envelope used by every list endpoint:
        {"items": [...], "pagination": {"page", "pages", "total"}}
    """

    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 200

    def get_paginated_response(self, data):
        return Response(
            {
                "items": data,
                "pagination": {
                    "page": self.page.number,
                    "pages": self.page.paginator.num_pages,
                    "total": self.page.paginator.count,
                },
            }
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "items": schema,
                "pagination": {
                    "type": "object",
                    "properties": {
                        "page": {"type": "integer"},
                        "pages": {"type": "integer"},
                        "total": {"type": "integer"},
                    },
                },
            },
        }
