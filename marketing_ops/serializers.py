"""DRF serializers for the marketing operations API.

Input serializers only coerce types; the business rules (required fields,
ownership, workflow legality) are enforced by the services so that every
entry point reports them the same way. Output serializers render the store
documents, which are plain dicts.
"""
from __future__ import annotations

from typing import Any

from rest_framework import serializers

from .models import AccessRequest, Influencer, User


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class TokenRefreshInputSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class VersionedInputSerializer(serializers.Serializer):
    expected_version = serializers.IntegerField(required=False, min_value=1)


class CampaignInputSerializer(VersionedInputSerializer):
    name = serializers.CharField(required=False, allow_blank=True)
    department = serializers.CharField(required=False, allow_blank=True)
    influencer_id = serializers.UUIDField(required=False, allow_null=True)
    budget = serializers.IntegerField(required=False, min_value=0)
    start_date = serializers.DateField(required=False)
    deliverables = serializers.CharField(required=False, allow_blank=True)


class StatusChangeSerializer(VersionedInputSerializer):
    status = serializers.CharField()
    summary = serializers.CharField(required=False, allow_blank=True, default='')


class CompletionSerializer(VersionedInputSerializer):
    completion_date = serializers.DateField()
    summary = serializers.CharField(required=False, allow_blank=True, default='')
    rating = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=5)


class PlatformSerializer(serializers.Serializer):
    platform = serializers.CharField()
    username = serializers.CharField(required=False, allow_blank=True, default='')
    channel = serializers.CharField(required=False, allow_blank=True, default='')


class InfluencerInputSerializer(VersionedInputSerializer):
    name = serializers.CharField(required=False, allow_blank=True)
    handle = serializers.CharField(required=False, allow_blank=True)
    avatar = serializers.URLField(required=False, allow_blank=True)
    category = serializers.CharField(required=False, allow_blank=True)
    influencer_type = serializers.CharField(required=False, allow_blank=True)
    languages = serializers.ListField(child=serializers.CharField(), required=False)
    location = serializers.CharField(required=False, allow_blank=True)
    platforms = PlatformSerializer(many=True, required=False)
    email = serializers.CharField(required=False, allow_blank=True)
    mobile = serializers.CharField(required=False, allow_blank=True)
    tax_id = serializers.CharField(required=False, allow_blank=True)
    influencer_status = serializers.ChoiceField(choices=('new', 'existing'), required=False)
    last_promo_by = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    last_promo_date = serializers.DateField(required=False, allow_null=True)
    last_price_paid = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class TaxIdCheckSerializer(serializers.Serializer):
    tax_id = serializers.CharField(allow_blank=True)
    exclude_id = serializers.UUIDField(required=False, allow_null=True)


class DepartmentInputSerializer(VersionedInputSerializer):
    name = serializers.CharField(required=False, allow_blank=True)
    hod_name = serializers.CharField(required=False, allow_blank=True)


class UserInputSerializer(VersionedInputSerializer):
    name = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True, trim_whitespace=False)
    role = serializers.CharField(required=False, allow_blank=True)
    department = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    avatar = serializers.URLField(required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)


class RoleAssignmentSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.Role.choices)
    department = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class UploadSerializer(serializers.Serializer):
    file = serializers.FileField()


class ActorSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    role = serializers.CharField(read_only=True)
    department = serializers.CharField(read_only=True, allow_null=True)
    avatar = serializers.CharField(read_only=True)


class DepartmentSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    hod_name = serializers.CharField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    version = serializers.IntegerField(read_only=True)


class UserSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    role = serializers.CharField(read_only=True)
    department = serializers.CharField(read_only=True, allow_null=True)
    avatar = serializers.CharField(read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    version = serializers.IntegerField(read_only=True)


class CampaignSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    influencer_id = serializers.CharField(read_only=True, allow_null=True)
    department = serializers.CharField(read_only=True, allow_null=True)
    status = serializers.CharField(read_only=True)
    budget = serializers.IntegerField(read_only=True)
    start_date = serializers.DateField(read_only=True)
    end_date = serializers.DateField(read_only=True, allow_null=True)
    deliverables = serializers.CharField(read_only=True)
    created_by = serializers.CharField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)
    status_changed_at = serializers.DateTimeField(read_only=True, allow_null=True)
    status_changed_by = serializers.CharField(read_only=True)
    status_change_summary = serializers.CharField(read_only=True)
    completion_date = serializers.DateField(read_only=True, allow_null=True)
    completion_summary = serializers.CharField(read_only=True)
    rating = serializers.IntegerField(read_only=True, allow_null=True)
    version = serializers.IntegerField(read_only=True)
    can_edit = serializers.BooleanField(read_only=True)
    can_change_status = serializers.BooleanField(read_only=True)
    can_complete = serializers.BooleanField(read_only=True)
    read_only_reason = serializers.CharField(read_only=True)


class InfluencerSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    handle = serializers.CharField(read_only=True)
    avatar = serializers.CharField(read_only=True)
    category = serializers.CharField(read_only=True)
    influencer_type = serializers.ChoiceField(choices=Influencer.Type.choices, read_only=True)
    languages = serializers.SerializerMethodField()
    location = serializers.CharField(read_only=True)
    platforms = serializers.DictField(read_only=True)
    email = serializers.CharField(read_only=True)
    mobile = serializers.CharField(read_only=True)
    mobile_visible = serializers.BooleanField(read_only=True)
    access_status = serializers.ChoiceField(choices=AccessRequest.Status.choices, read_only=True, allow_null=True)
    tax_id = serializers.CharField(read_only=True)
    last_promo_by = serializers.CharField(read_only=True, allow_null=True)
    last_promo_date = serializers.DateField(read_only=True, allow_null=True)
    last_price_paid = serializers.IntegerField(read_only=True, allow_null=True)
    created_by = serializers.CharField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)
    version = serializers.IntegerField(read_only=True)
    can_edit = serializers.BooleanField(read_only=True)

    def get_languages(self, obj: dict[str, Any]) -> list[str]:
        return [part.strip() for part in (obj.get('language') or '').split(',') if part.strip()]


class AccessRequestSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    requester_id = serializers.CharField(read_only=True)
    requester_name = serializers.CharField(read_only=True)
    requester_email = serializers.CharField(read_only=True)
    influencer_id = serializers.CharField(read_only=True)
    influencer_name = serializers.CharField(read_only=True)
    department = serializers.CharField(read_only=True, allow_null=True)
    status = serializers.CharField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    resolved_at = serializers.DateTimeField(read_only=True, allow_null=True)
    resolved_by = serializers.CharField(read_only=True)
    version = serializers.IntegerField(read_only=True)


class ActivityLogSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    actor_email = serializers.CharField(read_only=True)
    action = serializers.CharField(read_only=True)
    entity_type = serializers.CharField(read_only=True)
    entity_id = serializers.CharField(read_only=True)
    metadata = serializers.JSONField(read_only=True)
    timestamp = serializers.DateTimeField(read_only=True)
