"""Admin configuration for accounts app."""

from django.contrib import admin

from apps.accounts.models import Membership, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """Admin for User model."""

    list_display = ["email", "name", "is_super_admin", "is_staff", "is_active", "created_at"]
    list_filter = ["is_super_admin", "is_staff", "is_active"]
    search_fields = ["email", "name"]
    readonly_fields = ["last_login", "created_at", "updated_at"]
    exclude = ["password"]
    ordering = ["-created_at"]


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    """Admin for Membership model."""

    list_display = ["user", "company", "role", "is_active", "created_at"]
    list_filter = ["role", "is_active"]
    search_fields = ["user__email", "company__name", "stytch_member_id"]
    readonly_fields = ["stytch_member_id", "created_at", "updated_at"]
    raw_id_fields = ["user", "company"]
    ordering = ["-created_at"]
