"""
API views for the authentication app.

Token endpoints come from djangorestframework-simplejwt (see urls.py);
this module only adds the current-user endpoint.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import UserSerializer, UserUpdateSerializer


class CurrentUserView(APIView):
    """
    GET   /api/v1/auth/me/  - Current user
    PATCH /api/v1/auth/me/  - Update name and phone

    The phone number is passed to wallet gateways as customer info.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_current_user",
        summary="Get current user",
        responses={200: UserSerializer},
        tags=["Auth - User"],
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)

    @extend_schema(
        operation_id="update_current_user",
        summary="Update current user",
        request=UserUpdateSerializer,
        responses={200: UserSerializer},
        tags=["Auth - User"],
    )
    def patch(self, request):
        serializer = UserUpdateSerializer(request.user, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        user = serializer.save()
        return Response(UserSerializer(user).data)
