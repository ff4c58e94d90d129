# ldap3 による接続ファクトリ
#
# bind 失敗の分類:
#
# 1. 資格情報の拒否 (CredentialError → 次の候補へ)
#   - result=49 invalidCredentials (AD の場合 data 52e/525 等を含む)
#   - result=48 inappropriateAuthentication
#   - result=53 unwillingToPerform (空パスワード bind 拒否など)
#
# 2. それ以外 (InfrastructureError → 認証全体を中断)
#   - `Can't contact LDAP server` / socket error / timeout
#   - StartTLS 失敗 (証明書不一致など)
#   - その他の result コード
#

from __future__ import annotations

import logging
import ssl
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from ldap3 import ALL_ATTRIBUTES, ANONYMOUS, BASE, LEVEL, NONE, SIMPLE, SUBTREE, Connection, Server, Tls
from ldap3.core.exceptions import LDAPException
from ldap3.core.results import (
    RESULT_INAPPROPRIATE_AUTHENTICATION,
    RESULT_INVALID_CREDENTIALS,
    RESULT_NO_SUCH_OBJECT,
    RESULT_SIZE_LIMIT_EXCEEDED,
    RESULT_SUCCESS,
    RESULT_UNWILLING_TO_PERFORM,
)

from .config import LDAPBindConfig
from .dn import compose_dn
from .exceptions import CredentialError, InfrastructureError, LDAPBindAuthError

logger = logging.getLogger(__name__)

CREDENTIAL_RESULT_CODES = frozenset({
    RESULT_INAPPROPRIATE_AUTHENTICATION,
    RESULT_INVALID_CREDENTIALS,
    RESULT_UNWILLING_TO_PERFORM,
})


def parse_host_port(url: str, use_ssl: bool) -> Tuple[str, int]:
    """LDAP URL から host/port を抽出 (port なければ 636/389 既定)."""
    parsed = urlparse(url)
    host = parsed.hostname or url
    port = parsed.port or (636 if use_ssl else 389)
    return host, port


def _result_of(conn) -> Dict[str, Any]:
    return conn.result if isinstance(conn.result, dict) else {}


def _unbind_quietly(conn) -> None:
    try:
        conn.unbind()
    except LDAPException as e:
        logger.debug("LDAP unbind failed (ignored) | error=%s", e)


def close_connection(connection) -> None:
    """接続を解放する。None (未接続) も受け付け、例外は送出しない。"""
    if connection is None:
        return
    try:
        connection.close()
    except Exception:  # noqa: BLE001
        logger.debug("LDAP connection close failed (ignored)", exc_info=True)


class LDAPDirectoryConnection:
    """bind 済み ldap3 Connection のラッパ。

    相対 DN は生成元ファクトリの base_dn に対して解決する。
    """

    def __init__(self, conn: Connection, base_dn: str):
        self._conn = conn
        self.base_dn = base_dn
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def fetch_attributes(self, dn: str, attributes: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """相対 DN `dn` のエントリ属性を BASE スコープで読み出す。"""
        target = compose_dn(dn, self.base_dn)
        entries = self._search(target, '(objectClass=*)', BASE, attributes, size_limit=1)
        if not entries:
            raise InfrastructureError(f"LDAP entry not readable after bind | dn={target}")
        return entries[0][1]

    def search(self, search_base: str, search_filter: str, subtree: bool = True,
               attributes: Optional[Iterable[str]] = None, size_limit: int = 0) -> List[Tuple[str, Dict[str, Any]]]:
        """(dn, attributes) のリストを返す。search_base は完全 DN で渡す。"""
        scope = SUBTREE if subtree else LEVEL
        return self._search(search_base, search_filter, scope, attributes, size_limit)

    def _search(self, search_base, search_filter, scope, attributes, size_limit):
        attrs = list(attributes) if attributes else ALL_ATTRIBUTES
        try:
            self._conn.search(
                search_base=search_base,
                search_filter=search_filter,
                search_scope=scope,
                attributes=attrs,
                size_limit=size_limit,
            )
        except LDAPException as e:
            raise InfrastructureError(f"LDAP search failed | base={search_base} error={e}") from e
        result = _result_of(self._conn)
        code = result.get('result')
        if code == RESULT_NO_SUCH_OBJECT:
            return []
        if code not in (RESULT_SUCCESS, RESULT_SIZE_LIMIT_EXCEEDED):
            raise InfrastructureError(
                f"LDAP search failed | base={search_base} code={code} desc={result.get('description')}",
                result_code=code,
            )
        entries = []
        for item in self._conn.response or []:
            if item.get('type') != 'searchResEntry':
                continue
            entries.append((str(item.get('dn', '')), dict(item.get('attributes') or {})))
        return entries

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        _unbind_quietly(self._conn)


class LDAPConnectionFactory:
    """認証付き接続を 1 試行ごとに新規生成するファクトリ。"""

    def __init__(self, cfg: LDAPBindConfig):
        self.cfg = cfg
        self.host, self.port = parse_host_port(cfg.server_url, cfg.use_ssl)
        self.server = Server(
            self.host,
            port=self.port,
            use_ssl=cfg.use_ssl,
            get_info=NONE,
            tls=self._build_tls(),
            connect_timeout=cfg.connect_timeout,
        )

    @property
    def base_dn(self) -> str:
        return self.cfg.base_dn

    def _build_tls(self) -> Optional[Tls]:
        """LDAPS/StartTLS 用 Tls オブジェクト (不要なら None)."""
        if not (self.cfg.use_ssl or self.cfg.force_starttls):
            return None
        validate_mode = ssl.CERT_NONE if self.cfg.tls_insecure else ssl.CERT_REQUIRED
        return Tls(validate=validate_mode)

    def open_authenticated(self, principal: str, credential: str) -> LDAPDirectoryConnection:
        return self._open(principal, credential, SIMPLE)

    def open_anonymous(self) -> LDAPDirectoryConnection:
        return self._open(None, None, ANONYMOUS)

    def _open(self, user, password, authentication) -> LDAPDirectoryConnection:
        conn = Connection(
            self.server,
            user=user,
            password=password,
            authentication=authentication,
            auto_bind=False,
            read_only=True,
            raise_exceptions=False,
            receive_timeout=self.cfg.receive_timeout,
        )
        try:
            conn.open()
            if self.cfg.force_starttls and not self.cfg.use_ssl and not conn.start_tls():
                result = _result_of(conn)
                raise InfrastructureError(
                    f"LDAP StartTLS failed | host={self.host} desc={result.get('description')}",
                    result_code=result.get('result'),
                )
            if not conn.bind():
                self._raise_bind_failure(conn, user)
        except LDAPException as e:
            _unbind_quietly(conn)
            raise InfrastructureError(f"LDAP connection failed | host={self.host} error={e}") from e
        except LDAPBindAuthError:
            _unbind_quietly(conn)
            raise
        return LDAPDirectoryConnection(conn, self.base_dn)

    def _raise_bind_failure(self, conn, user) -> None:
        result = _result_of(conn)
        code = result.get('result')
        desc = result.get('description')
        logger.debug(
            "LDAP bind failed | host=%s user=%s code=%s desc=%s",
            self.host, user, code, desc,
            extra={'ldap': {'host': self.host, 'error_code': code, 'description': desc}},
        )
        if code in CREDENTIAL_RESULT_CODES:
            raise CredentialError(desc or 'invalidCredentials', result_code=code)
        raise InfrastructureError(
            f"LDAP bind failed | host={self.host} code={code} desc={desc} last_error={conn.last_error}",
            result_code=code,
        )
