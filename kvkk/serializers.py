from rest_framework import serializers

from core.models import AuditLog

from .models import ConsentType, DataBreach, DataSubjectRequest, UserConsent


class UserConsentSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserConsent
        fields = ["id", "user", "consent_type", "granted", "granted_at", "revoked_at", "ip_address", "updated_at"]
        read_only_fields = fields


class ConsentWriteSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(required=False)
    consent_type = serializers.ChoiceField(choices=ConsentType.choices)
    granted = serializers.BooleanField()


class DataSubjectRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataSubjectRequest
        fields = [
            "id",
            "user",
            "requested_by",
            "request_type",
            "status",
            "data",
            "rejection_reason",
            "requested_at",
            "completed_at",
        ]
        read_only_fields = fields


class SubjectSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(required=False)


class DataBreachSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataBreach
        fields = ["id", "description", "affected_users", "severity", "status", "detected_at", "reported_at"]
        read_only_fields = ["id", "status", "detected_at", "reported_at"]


class DataAccessLogSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = AuditLog
        fields = ["id", "created_at", "action", "user_id", "resource_type", "resource_id", "ip_address"]
        read_only_fields = fields
