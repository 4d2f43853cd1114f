from rest_framework import serializers

from .models import IntegrationProvider, IntegrationSyncJob, TenantIntegration
from .services import mask_config


class IntegrationProviderSerializer(serializers.ModelSerializer):
    class Meta:
        model = IntegrationProvider
        fields = ["id", "code", "name", "type", "is_active"]
        read_only_fields = fields


class TenantIntegrationSerializer(serializers.ModelSerializer):
    provider = IntegrationProviderSerializer(read_only=True)
    config = serializers.SerializerMethodField()

    class Meta:
        model = TenantIntegration
        fields = [
            "id",
            "client_company",
            "provider",
            "display_name",
            "config",
            "status",
            "last_sync_at",
            "last_error",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_config(self, obj):
        return mask_config(obj.config or {})


class TenantIntegrationWriteSerializer(serializers.Serializer):
    provider_id = serializers.IntegerField(required=False)
    provider_code = serializers.CharField(max_length=50, required=False)
    client_company_id = serializers.IntegerField(required=False, allow_null=True)
    display_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    config = serializers.JSONField(required=False)

    def validate(self, attrs):
        if not self.partial and not attrs.get("provider_id") and not attrs.get("provider_code"):
            raise serializers.ValidationError("provider_id or provider_code is required.")
        return attrs


class SyncRequestSerializer(serializers.Serializer):
    job_type = serializers.ChoiceField(choices=IntegrationSyncJob.JobType.choices)


class IntegrationSyncJobSerializer(serializers.ModelSerializer):
    class Meta:
        model = IntegrationSyncJob
        fields = ["id", "integration", "job_type", "status", "started_at", "finished_at", "error_message", "created_at"]
        read_only_fields = fields
