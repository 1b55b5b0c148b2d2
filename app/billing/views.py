"""
DRF views for the billing app.

Endpoints:
    GET /api/v1/billing/subscription/ - Current subscription and recent payments
    POST /api/v1/billing/checkout/ - Create a Razorpay subscription
    POST /api/v1/billing/cancel/ - Cancel (deferred by default or immediate)
    DELETE /api/v1/billing/cancel/ - Reverse a deferred cancellation
    POST /api/v1/billing/portal/ - Retired hosted portal (410)

The Razorpay webhook lives in billing.webhooks.views.

Security:
    - All endpoints here require authentication (401 otherwise)
    - Users only ever act on their own subscription
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult

from billing.models import Subscription
from billing.serializers import (
    CancelRequestSerializer,
    CheckoutRequestSerializer,
    CheckoutResponseSerializer,
    MessageSerializer,
    SubscriptionSerializer,
)
from billing.services import CancellationService, CheckoutService

# Maps service error codes to HTTP status codes. Gateway codes not listed
# here fall through to 500.
ERROR_STATUS_MAP = {
    "INVALID_PLAN": status.HTTP_400_BAD_REQUEST,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SUBSCRIPTION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SUBSCRIPTION_ALREADY_ACTIVE": status.HTTP_409_CONFLICT,
}

PORTAL_GONE_MESSAGE = "Use /api/v1/billing/cancel/ to manage your subscription."


def _error_response(result: ServiceResult) -> Response:
    return Response(
        result.to_response(),
        status=ERROR_STATUS_MAP.get(
            result.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
    )


class SubscriptionView(APIView):
    """
    Get the current user's subscription.

    GET /api/v1/billing/subscription/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_subscription",
        summary="Get current subscription",
        description="Return the current plan, status, billing period and recent payments.",
        responses={
            200: OpenApiResponse(response=SubscriptionSerializer),
            401: OpenApiResponse(description="Authentication required"),
        },
        tags=["Billing"],
    )
    def get(self, request):
        subscription, _ = Subscription.objects.get_or_create(user=request.user)
        return Response(SubscriptionSerializer(subscription).data)


class CheckoutView(APIView):
    """
    Start a paid subscription.

    POST /api/v1/billing/checkout/

    Request body:
        {"plan": "PRO", "interval": "YEARLY"}

    Returns:
        {"subscriptionId", "keyId", "name", "email", "plan", "interval"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_checkout",
        summary="Create checkout subscription",
        description=(
            "Create a Razorpay subscription for the chosen plan. The local "
            "subscription changes once Razorpay confirms activation."
        ),
        request=CheckoutRequestSerializer,
        responses={
            200: OpenApiResponse(response=CheckoutResponseSerializer),
            400: OpenApiResponse(description="Invalid plan"),
            401: OpenApiResponse(description="Authentication required"),
            404: OpenApiResponse(description="User not found"),
            409: OpenApiResponse(description="Already on an active plan"),
            500: OpenApiResponse(description="Failed to create subscription"),
        },
        tags=["Billing"],
    )
    def post(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {
                    "error": "Invalid plan",
                    "error_code": "INVALID_PLAN",
                    "errors": serializer.errors,
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = CheckoutService.create_checkout(
            user_id=request.user.pk,
            plan=serializer.validated_data["plan"],
            interval=serializer.validated_data["interval"],
        )
        if not result.success:
            return _error_response(result)

        return Response(result.data)


class CancelSubscriptionView(APIView):
    """
    Cancel or un-cancel the current user's subscription.

    POST /api/v1/billing/cancel/
        {"cancelAtPeriodEnd": true}   # Cancel at period end (default)
        {"cancelAtPeriodEnd": false}  # Cancel immediately

    DELETE /api/v1/billing/cancel/
        Reverse a scheduled end-of-period cancellation.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_subscription",
        summary="Cancel subscription",
        request=CancelRequestSerializer,
        responses={
            200: OpenApiResponse(response=MessageSerializer),
            401: OpenApiResponse(description="Authentication required"),
            404: OpenApiResponse(description="No active subscription found"),
            500: OpenApiResponse(description="Failed to cancel subscription"),
        },
        tags=["Billing"],
    )
    def post(self, request):
        serializer = CancelRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CancellationService.cancel_subscription(
            user_id=request.user.pk,
            cancel_at_period_end=serializer.validated_data["cancelAtPeriodEnd"],
        )
        if not result.success:
            return _error_response(result)

        return Response({"message": result.data["message"]})

    @extend_schema(
        operation_id="reverse_cancellation",
        summary="Reverse scheduled cancellation",
        request=None,
        responses={
            200: OpenApiResponse(response=MessageSerializer),
            401: OpenApiResponse(description="Authentication required"),
            404: OpenApiResponse(description="Subscription not found"),
        },
        tags=["Billing"],
    )
    def delete(self, request):
        result = CancellationService.reverse_cancellation(user_id=request.user.pk)
        if not result.success:
            return _error_response(result)

        return Response(result.data)


class BillingPortalView(APIView):
    """
    Retired hosted billing portal.

    POST /api/v1/billing/portal/

    Razorpay has no hosted customer portal; clients are pointed at the
    cancel endpoint instead.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="billing_portal",
        summary="Billing portal (retired)",
        request=None,
        responses={
            410: OpenApiResponse(description="Use the cancel endpoint instead"),
        },
        tags=["Billing"],
    )
    def post(self, request):
        return Response({"error": PORTAL_GONE_MESSAGE}, status=status.HTTP_410_GONE)
