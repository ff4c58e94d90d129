"""bind 認証で扱う例外。

呼び出し側に見えるのは InvalidCredentials / InfrastructureError / ContractViolation の 3 種のみ。
CredentialError と UserNotFound は認証ループ内で吸収される。
"""
from typing import Optional


class LDAPBindAuthError(Exception):
    """本パッケージの例外基底。"""


class CredentialError(LDAPBindAuthError):
    """ディレクトリが principal/credential の組を拒否した (次候補へ進む)。"""

    def __init__(self, message: str = 'invalidCredentials', result_code: Optional[int] = None):
        super().__init__(message)
        self.result_code = result_code


class InfrastructureError(LDAPBindAuthError):
    """ネットワーク / プロトコル / 設定の障害。認証ループを即中断する。"""

    def __init__(self, message: str, result_code: Optional[int] = None):
        super().__init__(message)
        self.result_code = result_code


class UserNotFound(LDAPBindAuthError):
    """ユーザ検索でエントリが見つからない。"""


class InvalidCredentials(LDAPBindAuthError):
    """全候補で認証失敗。メッセージは常に同一 (候補の情報は含めない)。"""


class ContractViolation(LDAPBindAuthError, TypeError):
    """呼び出し側が想定外の資格情報オブジェクトを渡した。"""
