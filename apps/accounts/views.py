from rest_framework import generics
from rest_framework.permissions import AllowAny, IsAuthenticated

from apps.accounts.serializers import CurrentUserSerializer, RegisterSerializer
from apps.audit.services import record_audit


class RegisterView(generics.CreateAPIView):
    serializer_class = RegisterSerializer
    permission_classes = [AllowAny]
    authentication_classes = []

    def perform_create(self, serializer):
        user = serializer.save()
        record_audit(
            actor=user,
            action="accounts.user.register",
            entity_type="user",
            entity_id=user.id,
            payload={"username": user.username, "role": user.role},
        )


class CurrentUserView(generics.RetrieveAPIView):
    serializer_class = CurrentUserSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user
