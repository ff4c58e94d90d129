"""テスト用のディレクトリ二重化 (接続の open/close 回数を記録)。"""
from ldap_bind.dn import compose_dn
from ldap_bind.exceptions import CredentialError, UserNotFound
from ldap_bind.records import DirectoryRecord

BASE_DN = 'dc=example,dc=com'


class FakeConnection:
    def __init__(self, factory, principal):
        self.factory = factory
        self.principal = principal
        self.close_calls = 0

    def fetch_attributes(self, dn, attributes=None):
        self.factory.fetched.append(dn)
        if self.factory.fetch_error is not None:
            raise self.factory.fetch_error
        _, attrs = self.factory.entries[compose_dn(dn, self.factory.base_dn)]
        if attributes is None:
            return dict(attrs)
        return {k: v for k, v in attrs.items() if k in attributes}

    def close(self):
        self.close_calls += 1


class FakeConnectionFactory:
    """entries: {完全 DN: (password, attributes)} / errors: {完全 DN: bind 時に送出する例外}"""

    def __init__(self, entries=None, errors=None, base_dn=BASE_DN, fetch_error=None):
        self.entries = entries or {}
        self.errors = errors or {}
        self.base_dn = base_dn
        self.fetch_error = fetch_error
        self.opened = []
        self.fetched = []
        self.connections = []

    def open_authenticated(self, principal, credential):
        self.opened.append(principal)
        if principal in self.errors:
            raise self.errors[principal]
        entry = self.entries.get(principal)
        if entry is None or entry[0] != credential:
            raise CredentialError('invalidCredentials', result_code=49)
        conn = FakeConnection(self, principal)
        self.connections.append(conn)
        return conn


class FakeUserSearch:
    def __init__(self, relative_dn=None, error=None, base_dn=BASE_DN):
        self.relative_dn = relative_dn
        self.error = error
        self.base_dn = base_dn
        self.calls = []

    def find(self, username):
        self.calls.append(username)
        if self.error is not None:
            raise self.error
        if self.relative_dn is None:
            raise UserNotFound(username)
        return DirectoryRecord(self.relative_dn, self.base_dn, {})
