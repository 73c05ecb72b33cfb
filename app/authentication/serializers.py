"""
Serializers for the authentication app.

- UserSerializer: The signed-in user (read)
- UserUpdateSerializer: Editable contact details
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """Current user, including whether they can act as an administrator."""

    is_administrator = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "full_name", "phone", "is_administrator", "date_joined"]
        read_only_fields = fields


class UserUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["full_name", "phone"]
