# services/views.py
from drf_spectacular.utils import extend_schema
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from .models import ProviderService
from .serializers import RegistrationSerializer


class SafePaginator(PageNumberPagination):
    page_size = 25
    page_size_query_param = "page_size"
    max_page_size = 100


@extend_schema(
    description="List the caller's service registrations with status, validity window and current price.",
    responses={200: RegistrationSerializer(many=True)},
)
class RegistrationListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = ProviderService.objects.filter(provider=request.user).select_related("service")
        status_val = request.query_params.get("status")
        if status_val:
            qs = qs.filter(payment_status=status_val)
        paginator = SafePaginator()
        page = paginator.paginate_queryset(qs, request)
        return paginator.get_paginated_response(RegistrationSerializer(page, many=True).data)
