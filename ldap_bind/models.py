from typing import List

from django.db import models
from django.contrib.auth.models import AbstractUser


class UserSource(models.TextChoices):
    LOCAL = 'local', 'ローカル'
    LDAP = 'ldap', 'LDAP'


class User(AbstractUser):
    """ローカルユーザ。LDAP bind 成功時に LDAPBindBackend が作成・同期する。"""
    source = models.CharField(
        max_length=20,
        choices=UserSource.choices,
        default=UserSource.LOCAL,
        db_index=True,
        verbose_name="出所"
    )
    ldap_dn = models.TextField(
        verbose_name="LDAP DN",
        blank=True,
        help_text="bind に成功したエントリの Distinguished Name"
    )
    last_synced_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="LDAP最終同期時刻"
    )

    class Meta:
        verbose_name = "ユーザー"
        verbose_name_plural = "ユーザー"

    @property
    def is_ldap_user(self) -> bool:
        return self.source == UserSource.LDAP

    def link_ldap_entry(self, dn: str) -> List[str]:
        """出所を LDAP にして bind した DN を記録する (保存はしない)。

        変更したフィールド名のリストを返す。
        """
        changed = []
        if not self.is_ldap_user:
            self.source = UserSource.LDAP
            changed.append('source')
        if self.ldap_dn != dn:
            self.ldap_dn = dn
            changed.append('ldap_dn')
        return changed
