"""DN (Distinguished Name) の合成・分解ヘルパ。"""
from __future__ import annotations

from typing import List

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn, parse_dn


def compose_dn(relative: str, base: str) -> str:
    """相対 DN の末尾に base を連結する (I/O なしの純粋な文字列合成)。"""
    relative = (relative or '').strip()
    base = (base or '').strip()
    if not base:
        return relative
    if not relative:
        return base
    return f"{relative},{base}"


_SEPARATORS = ',+='


def _strip_unescaped_spaces(dn: str) -> str:
    """区切り文字 (',' '+' '=') と両端に隣接するエスケープされていない空白だけを除く。

    `cn=jsmith\\ ` のようなエスケープ済み末尾空白は値の一部として残す。
    """
    chars = []
    escaped = False
    for c in dn:
        chars.append((c, escaped))
        escaped = c == '\\' and not escaped

    keep = [True] * len(chars)
    for order in (range(len(chars)), range(len(chars) - 1, -1, -1)):
        at_edge = True
        for i in order:
            c, is_escaped = chars[i]
            if c == ' ' and not is_escaped and at_edge:
                keep[i] = False
            else:
                at_edge = c in _SEPARATORS and not is_escaped
    return ''.join(c for (c, _), k in zip(chars, keep) if k)


def _rdns(dn: str) -> List[str]:
    """DN を RDN 単位 (複数値 RDN は '+' 連結のまま) に分解。不正な DN は ValueError。"""
    rdns: List[str] = []
    current: List[str] = []
    try:
        avas = parse_dn(_strip_unescaped_spaces(dn), strip=False)
    except LDAPInvalidDnError as e:
        raise ValueError(f"invalid DN {dn!r}: {e}") from e
    for attr, value, separator in avas:
        current.append(f"{attr}={value}")
        if separator != '+':
            rdns.append('+'.join(current))
            current = []
    if current:
        rdns.append('+'.join(current))
    return rdns


def relative_dn(dn: str, base: str) -> str:
    """`dn` から末尾の `base` を取り除いた相対 DN を返す (大文字小文字は区別しない)。

    `dn` が `base` 配下に無い、または DN として解析できなければ ValueError。
    """
    rdns = _rdns(dn) if dn else []
    base_rdns = _rdns(base) if base else []
    if not base_rdns:
        return ','.join(rdns)
    n = len(base_rdns)
    if len(rdns) < n or [r.lower() for r in rdns[-n:]] != [b.lower() for b in base_rdns]:
        raise ValueError(f"{dn!r} is not under {base!r}")
    return ','.join(rdns[:-n])


def format_dn_template(template: str, username: str) -> str:
    """`uid={0},ou=people` 形式のテンプレートへ RDN エスケープ済みユーザ名を埋め込む。"""
    escaped = escape_rdn(username)
    return template.format(escaped, username=escaped)


def format_filter(template: str, username: str) -> str:
    """`(uid={0})` / `(sAMAccountName={username})` 形式の検索フィルタを生成。"""
    escaped = escape_filter_chars(username)
    return template.format(escaped, username=escaped)
