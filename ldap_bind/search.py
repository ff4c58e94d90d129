"""ユーザ名から DN を検索で解決するコラボレータ。

テンプレート候補で bind できなかった場合のフォールバックとして 1 回だけ呼ばれる。
サービスアカウント (LDAP_BIND_DN) があればそれで bind し、無ければ匿名 bind で検索する。
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from .connection import close_connection
from .dn import compose_dn, format_filter, relative_dn
from .exceptions import CredentialError, InfrastructureError, UserNotFound
from .records import DirectoryRecord

logger = logging.getLogger(__name__)


class FilterBasedUserSearch:
    def __init__(self, connection_factory, search_base: str, search_filter: str, search_subtree: bool = True,
                 service_dn: Optional[str] = None, service_password: Optional[str] = None,
                 user_attributes: Optional[Iterable[str]] = None):
        self.connection_factory = connection_factory
        self.search_base = search_base
        self.search_filter = search_filter
        self.search_subtree = search_subtree
        self.service_dn = service_dn
        self.service_password = service_password
        self.user_attributes = tuple(user_attributes) if user_attributes is not None else None

    def find(self, username: str) -> DirectoryRecord:
        """username に一致する唯一のエントリを返す (DN は base からの相対形)。"""
        base_dn = self.connection_factory.base_dn
        search_base = compose_dn(self.search_base, base_dn)
        search_filter = format_filter(self.search_filter, username)
        logger.debug("LDAP user search | base=%s filter=%s", search_base, search_filter)

        connection = None
        try:
            connection = self._connect()
            entries = connection.search(
                search_base,
                search_filter,
                subtree=self.search_subtree,
                attributes=self.user_attributes,
                size_limit=2,
            )
        finally:
            close_connection(connection)

        if not entries:
            raise UserNotFound(username)
        if len(entries) > 1:
            raise InfrastructureError(
                f"LDAP user search returned multiple entries | base={search_base} filter={search_filter}"
            )
        dn, attributes = entries[0]
        try:
            user_dn = relative_dn(dn, base_dn)
        except ValueError as e:
            raise InfrastructureError(f"LDAP user search returned unusable DN | dn={dn} base={base_dn}") from e
        return DirectoryRecord(user_dn, base_dn, attributes)

    def _connect(self):
        if not self.service_dn:
            return self.connection_factory.open_anonymous()
        try:
            return self.connection_factory.open_authenticated(self.service_dn, self.service_password or '')
        except CredentialError as e:
            # サービスアカウントの拒否は利用者の資格情報ではなく設定の問題
            raise InfrastructureError(
                f"LDAP service account bind rejected | dn={self.service_dn}", result_code=e.result_code
            ) from e
