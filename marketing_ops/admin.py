"""Admin registrations for the database-backed entity store."""
from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import AccessRequest, ActivityLog, Campaign, Department, Influencer, User


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('name', 'hod_name', 'created_at')
    search_fields = ('name', 'hod_name')


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    ordering = ('-created_at',)
    list_display = ('email', 'name', 'role', 'department', 'is_active', 'created_at')
    list_filter = ('role', 'department', 'is_active')
    search_fields = ('email', 'name')
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Profile', {'fields': ('name', 'role', 'department', 'avatar')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'created_at')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'role', 'department', 'password1', 'password2'),
        }),
    )
    readonly_fields = ('created_at',)


@admin.register(Influencer)
class InfluencerAdmin(admin.ModelAdmin):
    list_display = ('name', 'handle', 'category', 'influencer_type', 'last_promo_department', 'created_by')
    list_filter = ('category', 'influencer_type')
    search_fields = ('name', 'handle', 'email', 'tax_id')


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ('name', 'department', 'status', 'budget', 'start_date', 'completion_date')
    list_filter = ('status', 'department')
    search_fields = ('name', 'created_by')
    readonly_fields = ('status_changed_at', 'status_changed_by', 'status_change_summary', 'version')


@admin.register(AccessRequest)
class AccessRequestAdmin(admin.ModelAdmin):
    list_display = ('requester_email', 'influencer_name', 'department', 'status', 'created_at', 'resolved_by')
    list_filter = ('status', 'department')


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ('action', 'actor_email', 'entity_type', 'entity_id', 'timestamp')
    list_filter = ('entity_type',)
    search_fields = ('actor_email', 'action')
