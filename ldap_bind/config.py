from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from django.conf import settings

DEFAULT_USER_ATTR_MAP = {
    'first_name': 'givenName',
    'last_name': 'sn',
    'email': 'mail',
}


@dataclass(frozen=True)
class LDAPBindConfig:
    """LDAP bind 認証の実行時設定 (Django settings から毎回ロード)。"""
    server_url: str
    base_dn: str
    user_dn_templates: Tuple[str, ...]
    user_search_base: str
    user_search_filter: str
    user_search_subtree: bool
    user_attributes: Optional[Tuple[str, ...]]
    service_dn: Optional[str]
    service_password: Optional[str]
    use_ssl: bool
    force_starttls: bool
    tls_insecure: bool
    connect_timeout: int
    receive_timeout: int
    user_attr_map: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_USER_ATTR_MAP))

    @staticmethod
    def load() -> 'LDAPBindConfig':
        attributes = getattr(settings, 'LDAP_USER_ATTRIBUTES', None)
        return LDAPBindConfig(
            server_url=getattr(settings, 'LDAP_SERVER_URL', 'ldap://localhost:389'),
            base_dn=getattr(settings, 'LDAP_BASE_DN', '') or '',
            user_dn_templates=tuple(getattr(settings, 'LDAP_USER_DN_TEMPLATES', None) or ()),
            user_search_base=getattr(settings, 'LDAP_USER_SEARCH_BASE', '') or '',
            user_search_filter=getattr(settings, 'LDAP_USER_SEARCH_FILTER', '') or '',
            user_search_subtree=bool(getattr(settings, 'LDAP_USER_SEARCH_SUBTREE', True)),
            user_attributes=tuple(attributes) if attributes is not None else None,
            service_dn=getattr(settings, 'LDAP_BIND_DN', None),
            service_password=getattr(settings, 'LDAP_BIND_PASSWORD', None),
            use_ssl=bool(getattr(settings, 'LDAP_USE_SSL', False)),
            force_starttls=bool(getattr(settings, 'LDAP_FORCE_STARTTLS', False)),
            tls_insecure=bool(getattr(settings, 'LDAP_TLS_INSECURE', False)),
            connect_timeout=int(getattr(settings, 'LDAP_CONNECT_TIMEOUT', 10)),
            receive_timeout=int(getattr(settings, 'LDAP_RECEIVE_TIMEOUT', 10)),
            user_attr_map=dict(getattr(settings, 'LDAP_USER_ATTR_MAP', None) or DEFAULT_USER_ATTR_MAP),
        )

    @property
    def search_enabled(self) -> bool:
        return bool(self.user_search_filter)
