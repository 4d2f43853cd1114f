from decimal import Decimal

from rest_framework import serializers

from .models import ClientCompanyRiskScore, DocumentRiskScore, RiskAlert, RiskRule, Severity


class RiskRuleSerializer(serializers.ModelSerializer):
    is_global = serializers.BooleanField(read_only=True)

    class Meta:
        model = RiskRule
        fields = [
            "id",
            "tenant",
            "scope",
            "code",
            "description",
            "weight",
            "is_active",
            "default_severity",
            "config",
            "is_global",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["tenant", "created_at", "updated_at"]


class RiskRuleWriteSerializer(serializers.Serializer):
    scope = serializers.ChoiceField(choices=RiskRule.Scope.choices, required=False)
    code = serializers.CharField(max_length=100, required=False)
    description = serializers.CharField(max_length=500, required=False)
    weight = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100"), required=False)
    is_active = serializers.BooleanField(required=False)
    default_severity = serializers.ChoiceField(choices=Severity.choices, required=False)
    config = serializers.JSONField(required=False)
    # Only platform staff may write rules shared by all tenants.
    is_global = serializers.BooleanField(required=False, default=False)


class DocumentRiskScoreSerializer(serializers.ModelSerializer):
    class Meta:
        model = DocumentRiskScore
        fields = ["document", "score", "severity", "triggered_rule_codes", "generated_at"]
        read_only_fields = fields


class ClientCompanyRiskScoreSerializer(serializers.ModelSerializer):
    class Meta:
        model = ClientCompanyRiskScore
        fields = ["client_company", "score", "severity", "triggered_rule_codes", "generated_at"]
        read_only_fields = fields


class RiskAlertSerializer(serializers.ModelSerializer):
    client_company_name = serializers.CharField(source="client_company.name", read_only=True, default=None)
    document_name = serializers.CharField(source="document.original_filename", read_only=True, default=None)

    class Meta:
        model = RiskAlert
        fields = [
            "id",
            "type",
            "title",
            "message",
            "severity",
            "status",
            "client_company",
            "client_company_name",
            "document",
            "document_name",
            "resolved_at",
            "resolved_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RiskAlertStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=RiskAlert.Status.choices)
