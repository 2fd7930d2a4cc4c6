"""
Page/limit pagination used by every list endpoint.
"""
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PageLimitPagination(PageNumberPagination):
    """`?page=&limit=` with a pagination block next to the results."""
    page_size_query_param = 'limit'
    max_page_size = 100
    results_key = 'results'

    def get_pagination_meta(self):
        page = self.page
        return {
            'current_page': page.number,
            'total_pages': page.paginator.num_pages,
            'total_items': page.paginator.count,
            'has_next_page': page.has_next(),
            'has_prev_page': page.has_previous(),
        }

    def get_paginated_response(self, data, key=None, **extra):
        body = {
            'success': True,
            key or self.results_key: data,
            'pagination': self.get_pagination_meta(),
        }
        body.update(extra)
        return Response(body)

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'properties': {
                'success': {'type': 'boolean'},
                self.results_key: schema,
                'pagination': {
                    'type': 'object',
                    'properties': {
                        'current_page': {'type': 'integer'},
                        'total_pages': {'type': 'integer'},
                        'total_items': {'type': 'integer'},
                        'has_next_page': {'type': 'boolean'},
                        'has_prev_page': {'type': 'boolean'},
                    },
                },
            },
        }
