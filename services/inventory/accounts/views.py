"""API views for registration, login and account approval."""
from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from . import services
from .models import Account
from .serializers import AccountSerializer, LoginSerializer, RegistrationSerializer


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def register(request: Request) -> Response:
    serializer = RegistrationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.register(**serializer.validated_data)
    return Response(
        {
            "message": result.message,
            "is_admin": result.is_admin,
            "account": AccountSerializer(result.account).data,
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request: Request) -> Response:
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.login(**serializer.validated_data)
    return Response(
        {
            "token": result.token,
            "expires_at": result.expires_at,
            "user": AccountSerializer(result.account).data,
        }
    )


class AccountViewSet(viewsets.GenericViewSet):
    queryset = Account.objects.all()
    serializer_class = AccountSerializer
    lookup_value_regex = r"\d+"

    @action(detail=False, methods=["get"], url_path="me")
    def me(self, request: Request) -> Response:
        return Response(self.get_serializer(request.user).data)

    @action(detail=False, methods=["get"], url_path="pending")
    def pending(self, request: Request) -> Response:
        """Accounts still waiting for an administrator."""

        accounts = services.list_pending_approvals(request.user)
        return Response(self.get_serializer(accounts, many=True).data)

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request: Request, pk: str | None = None) -> Response:
        account = services.approve_account(request.user, int(pk))
        return Response(
            {
                "message": "User approved successfully",
                "account": self.get_serializer(account).data,
            }
        )


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request: Request) -> Response:
    """Readiness endpoint for orchestration tooling."""

    return Response({"status": "ok"})
