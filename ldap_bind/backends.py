"""Django AUTHENTICATION_BACKENDS 用アダプタ。

認証そのものは BindAuthenticator に委譲し、ここでは
  - 成功時: ローカル User の取得/作成と LDAP 属性の同期
  - 失敗時: 一律メッセージを request に記録して None
  - 基盤障害: ログを残して例外をそのまま送出 (ログイン失敗ではなくシステム障害)
のみを扱う。
"""
import logging
from typing import Any, cast

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.utils import timezone

from .authenticator import BindAuthenticator
from .config import LDAPBindConfig
from .exceptions import InfrastructureError, InvalidCredentials
from .records import UsernamePasswordCredentials

logger = logging.getLogger('django.security.authentication')
dbg_logger = logging.getLogger(__name__)


class LDAPBindBackend(ModelBackend):
    """利用者資格情報で直接 bind する LDAP 認証バックエンド。"""

    def get_authenticator(self, cfg: LDAPBindConfig) -> BindAuthenticator:
        return BindAuthenticator.from_config(cfg)

    def authenticate(self, request, username=None, password=None, **kwargs):
        if not username or not password:
            return None
        cfg = LDAPBindConfig.load()
        authenticator = self.get_authenticator(cfg)
        try:
            record = authenticator.authenticate(UsernamePasswordCredentials(username, password))
        except InvalidCredentials as e:
            dbg_logger.debug("LDAP auth failed | user=%s", username)
            self._remember_auth_error(request, str(e))
            return None
        except InfrastructureError:
            logger.exception("LDAP infrastructure error | user=%s host=%s", username, cfg.server_url)
            raise

        user = self._ensure_local_user(username)
        self._sync_profile_from_ldap(user, record, cfg)
        if not self.user_can_authenticate(user):
            logger.info("LDAP auth success but local user inactive | user=%s", username)
            return None
        logger.info(
            "LDAP auth success | user=%s dn=%s", username, record.dn,
            extra={'ldap': {'dn': record.dn}}
        )
        return user

    def _remember_auth_error(self, request, message):
        if request is None:
            return
        if hasattr(request, 'auth_error_messages'):
            request.auth_error_messages.append(message)
        else:
            request.auth_error_messages = [message]

    def _ensure_local_user(self, username):
        """ローカルユーザを取得/新規作成 (新規時はパスワード使用不可)。"""
        UserModel = get_user_model()
        try:
            return UserModel.objects.get(username=username)
        except UserModel.DoesNotExist:
            manager = cast(Any, UserModel.objects)
            user = manager.create_user(username=username)
            user.set_unusable_password()
            user.save()
            dbg_logger.debug("Local user created from LDAP | user=%s", username)
            return user

    def _sync_profile_from_ldap(self, user, record, cfg):
        """LDAP 属性の差分を User に反映する。"""
        changed = user.link_ldap_entry(record.dn)
        for field_name, attr_name in cfg.user_attr_map.items():
            value = str(record.first(attr_name, '') or '')
            if value and getattr(user, field_name, None) != value:
                setattr(user, field_name, value)
                changed.append(field_name)

        user.last_synced_at = timezone.now()
        user.save(update_fields=list(set(changed + ['last_synced_at'])))
        if changed:
            logger.info("LDAP user fields changed | user=%s changed=%s", user.username, ','.join(changed))
