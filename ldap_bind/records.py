"""認証 1 回分の中だけで生成・消費される値オブジェクト。"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Union

from .dn import compose_dn
from .exceptions import InfrastructureError


@dataclass(frozen=True)
class UsernamePasswordCredentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class DirectoryRecord:
    """bind 成功後に取得したエントリ。

    relative_dn は base_dn を含まない形 (属性取得にもこちらを使う)。
    """
    relative_dn: str
    base_dn: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def dn(self) -> str:
        return compose_dn(self.relative_dn, self.base_dn)

    def first(self, name: str, default: Any = '') -> Any:
        """属性の先頭値 (属性名は大文字小文字を区別しない)。"""
        for key, value in self.attributes.items():
            if key.lower() != name.lower():
                continue
            if isinstance(value, (list, tuple)):
                return value[0] if value else default
            return default if value is None else value
        return default


@dataclass(frozen=True)
class Success:
    record: DirectoryRecord


@dataclass(frozen=True)
class CredentialRejected:
    cause: Exception


@dataclass(frozen=True)
class Fatal:
    error: InfrastructureError


AttemptOutcome = Union[Success, CredentialRejected, Fatal]
