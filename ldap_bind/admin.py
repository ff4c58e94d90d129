from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


class LDAPSyncStateFilter(admin.SimpleListFilter):
    """最終同期時刻の有無で LDAP 同期済み / 未同期を絞り込む"""
    title = 'LDAP 同期'
    parameter_name = 'ldap_synced'

    def lookups(self, request, model_admin):
        return (
            ('yes', '同期済み'),
            ('no', '未同期'),
        )

    def queryset(self, request, queryset):
        if self.value() == 'yes':
            return queryset.filter(last_synced_at__isnull=False)
        if self.value() == 'no':
            return queryset.filter(last_synced_at__isnull=True)
        return queryset


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """LDAP 連携項目 (出所 / bind DN / 最終同期) を表示・検索できるユーザ管理"""
    fieldsets = (*(BaseUserAdmin.fieldsets or ()), ('LDAP 連携', {
        'fields': ('source', 'ldap_dn', 'last_synced_at'),
    }))
    list_display = ('username', 'source', 'ldap_dn', 'last_synced_at', 'is_active')
    list_filter = ('source', LDAPSyncStateFilter, 'is_active', 'is_staff')
    # DN の一部 (ou=... 等) でも検索できるようにする
    search_fields = (*BaseUserAdmin.search_fields, 'ldap_dn')
    readonly_fields = ('ldap_dn', 'last_synced_at')
