from django.test import SimpleTestCase

from ldap_bind.dn import compose_dn, format_dn_template, format_filter, relative_dn
from ldap_bind.records import DirectoryRecord


class DnHelperTests(SimpleTestCase):
    """DN 合成・分解"""

    def test_compose(self):
        self.assertEqual(compose_dn('uid=jsmith,ou=people', 'dc=example,dc=com'),
                         'uid=jsmith,ou=people,dc=example,dc=com')
        self.assertEqual(compose_dn('uid=jsmith', ''), 'uid=jsmith')
        self.assertEqual(compose_dn('', 'dc=example,dc=com'), 'dc=example,dc=com')

    def test_relative_is_case_insensitive(self):
        self.assertEqual(relative_dn('uid=jsmith,ou=people,DC=Example,DC=com', 'dc=example,dc=com'),
                         'uid=jsmith,ou=people')
        self.assertEqual(relative_dn('uid=jsmith, ou=people, dc=example, dc=com', 'dc=example,dc=com'),
                         'uid=jsmith,ou=people')

    def test_relative_of_base_and_empty_base(self):
        self.assertEqual(relative_dn('dc=example,dc=com', 'dc=example,dc=com'), '')
        self.assertEqual(relative_dn('uid=jsmith,dc=example,dc=com', ''), 'uid=jsmith,dc=example,dc=com')

    def test_relative_outside_base(self):
        with self.assertRaises(ValueError):
            relative_dn('uid=jsmith,dc=other,dc=org', 'dc=example,dc=com')

    def test_relative_keeps_escaped_spaces(self):
        self.assertEqual(relative_dn('cn=jsmith\\ ,ou=people,dc=example,dc=com', 'dc=example,dc=com'),
                         'cn=jsmith\\ ,ou=people')
        self.assertEqual(relative_dn('cn=\\ jsmith , ou=people , dc=example,dc=com', 'dc=example,dc=com'),
                         'cn=\\ jsmith,ou=people')

    def test_relative_invalid_dn(self):
        for dn in ('cn=jsmith\\,dc=example,dc=com', 'cn=jsmith\\', '=jsmith,dc=example,dc=com'):
            with self.subTest(dn=dn):
                with self.assertRaises(ValueError):
                    relative_dn(dn, 'dc=example,dc=com')

    def test_templates_and_filters(self):
        self.assertEqual(format_dn_template('uid={0},ou=people', 'jsmith'), 'uid=jsmith,ou=people')
        self.assertEqual(format_dn_template('cn={username},ou=people', 'a+b'), 'cn=a\\+b,ou=people')
        self.assertEqual(format_filter('(uid={0})', 'jsmith'), '(uid=jsmith)')
        self.assertEqual(format_filter('(sAMAccountName={username})', 'j*'), '(sAMAccountName=j\\2a)')

    def test_record_first(self):
        record = DirectoryRecord('uid=jsmith', 'dc=example,dc=com', {'mail': ['j@example.com'], 'cn': 'John', 'sn': []})
        self.assertEqual(record.dn, 'uid=jsmith,dc=example,dc=com')
        self.assertEqual(record.first('MAIL'), 'j@example.com')
        self.assertEqual(record.first('cn'), 'John')
        self.assertEqual(record.first('sn', 'x'), 'x')
        self.assertEqual(record.first('givenName'), '')
