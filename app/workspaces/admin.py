"""
Django admin configuration for workspaces.
"""

from django.contrib import admin

from workspaces.models import Workspace, WorkspaceMembership


class WorkspaceMembershipInline(admin.TabularInline):
    model = WorkspaceMembership
    extra = 0
    raw_id_fields = ("user",)
    readonly_fields = ("created_at",)


@admin.register(Workspace)
class WorkspaceAdmin(admin.ModelAdmin):
    list_display = ("name", "visibility", "created_by", "created_at")
    list_filter = ("visibility", "created_at")
    search_fields = ("name", "description")
    raw_id_fields = ("created_by",)
    readonly_fields = ("id", "created_at", "updated_at")
    inlines = [WorkspaceMembershipInline]
