"""利用者本人の資格情報でディレクトリに bind して認証するコア。

流れ (成功した時点で即 return):
  1. ユーザ名から DN テンプレート候補を設定順に生成
  2. 各候補で順次: base DN を付与した完全 DN で bind → 相対 DN で属性取得
  3. 全候補が資格情報エラーならユーザ検索で DN を解決し 1 回だけ bind
  4. それでも失敗なら一律の InvalidCredentials

資格情報エラー (CredentialError) だけを次候補への継続として扱い、
それ以外 (InfrastructureError) は即座に呼び出し側へ送出する。
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from ldap3.core.exceptions import LDAPException

from .config import LDAPBindConfig
from .connection import LDAPConnectionFactory, close_connection
from .dn import compose_dn, format_dn_template
from .exceptions import (
    ContractViolation,
    CredentialError,
    InfrastructureError,
    InvalidCredentials,
    UserNotFound,
)
from .messages import SettingsMessageSource
from .records import (
    AttemptOutcome,
    CredentialRejected,
    DirectoryRecord,
    Fatal,
    Success,
    UsernamePasswordCredentials,
)
from .search import FilterBasedUserSearch

BAD_CREDENTIALS_KEY = 'BindAuthenticator.badCredentials'
BAD_CREDENTIALS_DEFAULT = 'Bad credentials'
# 検索で見つからなかった場合のダミー bind 先 (base DN 直下)
DECOY_DN_TEMPLATE = 'cn={0}'

logger = logging.getLogger('django.security.authentication')
dbg_logger = logging.getLogger(__name__)


class BindAuthenticator:
    """ユーザとして bind する authenticator。

    connection_factory: `base_dn` と `open_authenticated(principal, credential)` を持つもの
    user_search: `find(username) -> DirectoryRecord` を持つもの (任意)
    """

    def __init__(self, connection_factory, user_dn_templates: Sequence[str] = (), user_search=None,
                 user_attributes: Optional[Iterable[str]] = None, messages=None):
        self.connection_factory = connection_factory
        self.user_dn_templates = tuple(user_dn_templates)
        self.user_search = user_search
        self.user_attributes = tuple(user_attributes) if user_attributes is not None else None
        self.messages = messages or SettingsMessageSource()

    @classmethod
    def from_config(cls, cfg: Optional[LDAPBindConfig] = None) -> 'BindAuthenticator':
        cfg = cfg or LDAPBindConfig.load()
        factory = LDAPConnectionFactory(cfg)
        user_search = None
        if cfg.search_enabled:
            user_search = FilterBasedUserSearch(
                factory,
                search_base=cfg.user_search_base,
                search_filter=cfg.user_search_filter,
                search_subtree=cfg.user_search_subtree,
                service_dn=cfg.service_dn,
                service_password=cfg.service_password,
                user_attributes=cfg.user_attributes,
            )
        return cls(factory, cfg.user_dn_templates, user_search, cfg.user_attributes)

    @property
    def base_dn(self) -> str:
        return self.connection_factory.base_dn

    def get_user_dns(self, username: str) -> List[str]:
        return [format_dn_template(template, username) for template in self.user_dn_templates]

    def authenticate(self, credentials) -> DirectoryRecord:
        if not isinstance(credentials, UsernamePasswordCredentials):
            raise ContractViolation("Can only process UsernamePasswordCredentials objects")
        username = credentials.username
        password = credentials.password
        if not isinstance(username, str) or not isinstance(password, str):
            raise ContractViolation("Username and password must be strings")

        if not username or not password:
            # 空パスワードの simple bind は匿名 bind 扱いで成功しうるため試行しない
            dbg_logger.debug("Empty username or password rejected without bind")
            raise self._bad_credentials()

        if not self.user_dn_templates and self.user_search is None:
            logger.warning(
                "LDAP no bind candidates configured | user=%s "
                "hint=set LDAP_USER_DN_TEMPLATES or LDAP_USER_SEARCH_FILTER", username
            )
            raise self._bad_credentials()

        for user_dn in self.get_user_dns(username):
            outcome = self.bind_with_dn(user_dn, username, password)
            if isinstance(outcome, Success):
                return outcome.record
            if isinstance(outcome, Fatal):
                raise outcome.error

        if self.user_search is not None:
            try:
                user_from_search = self.user_search.find(username)
            except UserNotFound:
                dbg_logger.debug("LDAP user search found no entry | user=%s", username)
                self._bind_decoy(username, password)
            else:
                outcome = self.bind_with_dn(user_from_search.relative_dn, username, password)
                if isinstance(outcome, Success):
                    return outcome.record
                if isinstance(outcome, Fatal):
                    raise outcome.error

        raise self._bad_credentials()

    def bind_with_dn(self, user_dn: str, username: str, password: str) -> AttemptOutcome:
        """1 候補分の bind 試行。接続はどの経路でも必ず 1 回解放する。"""
        base_dn = self.base_dn
        full_dn = compose_dn(user_dn, base_dn)
        dbg_logger.debug("Attempting to bind | dn=%s", full_dn, extra={'ldap': {'dn': full_dn}})
        connection = None
        try:
            try:
                connection = self.connection_factory.open_authenticated(full_dn, password)
            except CredentialError as e:
                self._notify_bind_exception(user_dn, username, e)
                return CredentialRejected(e)
            except InfrastructureError as e:
                return Fatal(e)
            except LDAPException as e:
                return Fatal(self._convert(e, full_dn))

            # bind 成功後の読み出し失敗は資格情報ではなく基盤の異常
            try:
                attributes = connection.fetch_attributes(user_dn, self.user_attributes)
            except InfrastructureError as e:
                return Fatal(e)
            except (CredentialError, LDAPException) as e:
                return Fatal(self._convert(e, full_dn))
            return Success(DirectoryRecord(user_dn, base_dn, dict(attributes)))
        finally:
            close_connection(connection)

    def handle_bind_exception(self, user_dn: str, username: str, cause: Exception) -> None:
        """DN ごとの bind 失敗を受け取るフック (既定は DEBUG ログのみ)。

        サブクラスで監査用途に上書きできるが、戻り値・例外は認証結果に影響しない。
        """
        dbg_logger.debug("Failed to bind | dn=%s user=%s cause=%s", user_dn, username, cause)

    def _notify_bind_exception(self, user_dn, username, cause) -> None:
        try:
            self.handle_bind_exception(user_dn, username, cause)
        except Exception:  # noqa: BLE001
            dbg_logger.warning("handle_bind_exception raised (ignored) | dn=%s", user_dn, exc_info=True)

    def _bind_decoy(self, username: str, password: str) -> None:
        """検索で見つからないユーザでも、存在するユーザの誤パスワードと同じ回数 bind する。

        結果は常に捨てる (フックにも通知しない)。基盤エラーだけは通常の試行と同様に送出。
        """
        decoy_dn = compose_dn(format_dn_template(DECOY_DN_TEMPLATE, username), self.base_dn)
        connection = None
        try:
            connection = self.connection_factory.open_authenticated(decoy_dn, password)
        except CredentialError:
            dbg_logger.debug("Decoy bind rejected | user=%s", username)
        except LDAPException as e:
            raise self._convert(e, decoy_dn) from e
        finally:
            close_connection(connection)

    def _convert(self, error: Exception, full_dn: str) -> InfrastructureError:
        converted = InfrastructureError(f"LDAP error | dn={full_dn} error={error}")
        converted.__cause__ = error
        return converted

    def _bad_credentials(self) -> InvalidCredentials:
        return InvalidCredentials(self.messages.resolve(BAD_CREDENTIALS_KEY, BAD_CREDENTIALS_DEFAULT))
