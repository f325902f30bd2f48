"""JWT session tokens.

Each login opens a session identified by a random ``sid`` claim, which the
anti-forgery tokens are bound to.  ``role`` and ``name`` claims are for
client display only; authorization always re-reads the identity.
"""

from __future__ import annotations

import secrets
from typing import Dict

from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.views import TokenObtainPairView

from modules.accounts.models import Identity, Role


class SessionTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user: Identity):
        token = super().get_token(user)
        token["sid"] = secrets.token_hex(16)
        token["role"] = Role(user.role).name.lower()
        token["name"] = user.name
        return token


class SessionTokenObtainPairView(TokenObtainPairView):
    serializer_class = SessionTokenObtainPairSerializer
    throttle_scope = "auth"


def issue_session_tokens(identity: Identity) -> Dict[str, str]:
    refresh = SessionTokenObtainPairSerializer.get_token(identity)
    return {"refresh": str(refresh), "access": str(refresh.access_token)}
