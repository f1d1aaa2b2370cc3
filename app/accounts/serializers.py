from rest_framework import serializers

from accounts.tokens import user_role


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField(error_messages={"required": "Email is required", "invalid": "Invalid email"})
    password = serializers.CharField(error_messages={"required": "Password is required"})


class UserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    email = serializers.EmailField()
    fullName = serializers.SerializerMethodField()
    role = serializers.SerializerMethodField()

    def get_fullName(self, user):
        return user.get_full_name() or user.get_username()

    def get_role(self, user):
        return user_role(user)
