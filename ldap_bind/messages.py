"""認証失敗メッセージの解決 (Django の翻訳機構 + settings での上書き)。"""
from django.conf import settings
from django.utils.translation import gettext


class SettingsMessageSource:
    """`LDAP_AUTH_MESSAGES` に key があればそれを、無ければ default を翻訳して返す。"""

    def resolve(self, key: str, default: str) -> str:
        overrides = getattr(settings, 'LDAP_AUTH_MESSAGES', None) or {}
        message = overrides.get(key)
        if message:
            return str(message)
        return gettext(default)
