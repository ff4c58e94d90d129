from unittest.mock import patch

from django.contrib.auth import authenticate, get_user_model
from django.test import RequestFactory, TestCase, override_settings

from ldap_bind.authenticator import BindAuthenticator
from ldap_bind.backends import LDAPBindBackend
from ldap_bind.exceptions import InfrastructureError
from ldap_bind.models import UserSource

from .fakes import FakeConnectionFactory

JSMITH_DN = 'uid=jsmith,ou=people,dc=example,dc=com'
JSMITH_ATTRS = {'givenName': ['John'], 'sn': ['Smith'], 'mail': ['jsmith@example.com']}


@override_settings(
    LDAP_BASE_DN='dc=example,dc=com',
    LDAP_USER_DN_TEMPLATES=['uid={0},ou=people'],
    LDAP_USER_SEARCH_FILTER='',
)
class LDAPBindBackendTests(TestCase):
    """LDAPBindBackend.authenticate のテスト"""

    def setUp(self):
        self.factory = FakeConnectionFactory(entries={JSMITH_DN: ('secret', JSMITH_ATTRS)})
        authenticator = BindAuthenticator(self.factory, ['uid={0},ou=people'])
        patcher = patch.object(LDAPBindBackend, 'get_authenticator', return_value=authenticator)
        self.mock_get_authenticator = patcher.start()
        self.addCleanup(patcher.stop)
        self.request = RequestFactory().post('/login/')

    def test_success_creates_local_user(self):
        user = LDAPBindBackend().authenticate(self.request, username='jsmith', password='secret')
        self.assertIsNotNone(user)
        user.refresh_from_db()
        self.assertEqual(user.username, 'jsmith')
        self.assertEqual(user.source, UserSource.LDAP)
        self.assertEqual(user.ldap_dn, JSMITH_DN)
        self.assertEqual(user.first_name, 'John')
        self.assertEqual(user.last_name, 'Smith')
        self.assertEqual(user.email, 'jsmith@example.com')
        self.assertIsNotNone(user.last_synced_at)
        self.assertFalse(user.has_usable_password())

    def test_existing_local_user_is_synced(self):
        User = get_user_model()
        User.objects.create_user(username='jsmith', email='old@example.com')
        user = LDAPBindBackend().authenticate(self.request, username='jsmith', password='secret')
        self.assertEqual(User.objects.count(), 1)
        self.assertEqual(user.source, UserSource.LDAP)
        self.assertEqual(User.objects.get(username='jsmith').email, 'jsmith@example.com')

    def test_bad_credentials_returns_none(self):
        user = LDAPBindBackend().authenticate(self.request, username='jsmith', password='wrong')
        self.assertIsNone(user)
        self.assertEqual(self.request.auth_error_messages, ['Bad credentials'])
        self.assertFalse(get_user_model().objects.filter(username='jsmith').exists())

    def test_missing_credentials(self):
        self.assertIsNone(LDAPBindBackend().authenticate(self.request, username='jsmith', password=''))
        self.assertIsNone(LDAPBindBackend().authenticate(self.request, username=None, password='secret'))
        self.mock_get_authenticator.assert_not_called()

    def test_inactive_user_refused(self):
        get_user_model().objects.create_user(username='jsmith', is_active=False)
        self.assertIsNone(LDAPBindBackend().authenticate(self.request, username='jsmith', password='secret'))

    def test_infrastructure_error_propagates(self):
        self.factory.errors[JSMITH_DN] = InfrastructureError("Can't contact LDAP server")
        with self.assertLogs('django.security.authentication', level='ERROR'):
            with self.assertRaises(InfrastructureError):
                LDAPBindBackend().authenticate(self.request, username='jsmith', password='secret')

    @override_settings(AUTHENTICATION_BACKENDS=['ldap_bind.backends.LDAPBindBackend'])
    def test_django_authenticate(self):
        user = authenticate(self.request, username='jsmith', password='secret')
        self.assertEqual(user.username, 'jsmith')
        self.assertEqual(user.backend, 'ldap_bind.backends.LDAPBindBackend')
        self.assertIsNone(authenticate(self.request, username='jsmith', password='wrong'))
