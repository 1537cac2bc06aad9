from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PaginacionEstandar(PageNumberPagination):
    """
    Paginación por ?page=N&limit=M (limit máximo 100).

    Respuesta:
        {"data": [...], "meta": {"total", "page", "limit", "totalPages",
                                 "hasNextPage", "hasPreviousPage"}}
    """

    page_size = 10
    page_query_param = "page"
    page_size_query_param = "limit"
    max_page_size = 100

    def get_paginated_response(self, data):
        pagina = self.page
        return Response(
            {
                "data": data,
                "meta": {
                    "total": pagina.paginator.count,
                    "page": pagina.number,
                    "limit": pagina.paginator.per_page,
                    "totalPages": pagina.paginator.num_pages,
                    "hasNextPage": pagina.has_next(),
                    "hasPreviousPage": pagina.has_previous(),
                },
            }
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "data": schema,
                "meta": {
                    "type": "object",
                    "properties": {
                        "total": {"type": "integer"},
                        "page": {"type": "integer"},
                        "limit": {"type": "integer"},
                        "totalPages": {"type": "integer"},
                        "hasNextPage": {"type": "boolean"},
                        "hasPreviousPage": {"type": "boolean"},
                    },
                },
            },
        }
