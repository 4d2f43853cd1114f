from rest_framework import serializers

from .models import TenantSubscription
from .plans import PLAN_LIMITS


class SubscriptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = TenantSubscription
        fields = ["plan", "status", "valid_until", "trial_until", "updated_at"]
        read_only_fields = ["updated_at"]


class SubscriptionUpdateSerializer(serializers.Serializer):
    plan = serializers.ChoiceField(choices=list(PLAN_LIMITS), required=False)
    status = serializers.ChoiceField(choices=TenantSubscription.Status.choices, required=False)
    valid_until = serializers.DateTimeField(required=False)
    trial_until = serializers.DateTimeField(required=False)
