"""Identity DRF serializers (output only; input goes through DTOs)."""

from __future__ import annotations

from rest_framework import serializers

from modules.accounts.models import Identity, Role


class IdentitySerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(format="hex", read_only=True)
    role = serializers.SerializerMethodField()
    is_admin = serializers.BooleanField(read_only=True)
    is_super_admin = serializers.BooleanField(read_only=True)

    class Meta:
        model = Identity
        fields = [
            "id",
            "name",
            "email",
            "role",
            "is_admin",
            "is_super_admin",
            "auth_provider",
            "created_at",
        ]
        read_only_fields = fields

    def get_role(self, obj: Identity) -> str:
        return Role(obj.role).name.lower()


class AdminIdentitySerializer(IdentitySerializer):
    class Meta(IdentitySerializer.Meta):
        fields = IdentitySerializer.Meta.fields + ["updated_at", "deleted_at"]
        read_only_fields = fields
