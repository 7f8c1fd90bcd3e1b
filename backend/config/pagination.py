from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class OptionalPageNumberPagination(PageNumberPagination):
    page_size_query_param = "page_size"

    def get_page_size(self, request):
        # Read per request so override_settings and env changes apply.
        self.page_size = settings.API_PAGE_SIZE
        self.max_page_size = settings.API_MAX_PAGE_SIZE
        return super().get_page_size(request)


class OptionalPaginationListMixin:
    """List endpoints return a bare array unless the client asks for a page."""

    pagination_class = OptionalPageNumberPagination
    pagination_query_params = ("page", "page_size")

    def wants_pagination(self, request) -> bool:
        return any(param in request.query_params for param in self.pagination_query_params)

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        if self.wants_pagination(request):
            page = self.paginate_queryset(queryset)
            if page is not None:
                serializer = self.get_serializer(page, many=True)
                return self.get_paginated_response(serializer.data)

        return Response(self.get_serializer(queryset, many=True).data)
