from getpass import getpass

from django.core.management.base import BaseCommand

from ldap_bind.authenticator import BindAuthenticator
from ldap_bind.config import LDAPBindConfig
from ldap_bind.exceptions import InfrastructureError, InvalidCredentials
from ldap_bind.records import UsernamePasswordCredentials


class Command(BaseCommand):
    help = 'Show LDAP bind settings and optionally test authentication'

    def add_arguments(self, parser):
        parser.add_argument('--username', type=str, help='Username to test')
        parser.add_argument('--password', type=str, help='Password to test (prompted if omitted)')

    def handle(self, *args, **options):
        cfg = LDAPBindConfig.load()
        username = options.get('username')
        password = options.get('password')

        self.stdout.write(f'LDAP Server URL: {cfg.server_url}')
        self.stdout.write(f'LDAP Base DN: {cfg.base_dn or "Not configured"}')
        self.stdout.write(f'LDAP DN templates: {", ".join(cfg.user_dn_templates) or "Not configured"}')
        self.stdout.write(f'LDAP Search filter: {cfg.user_search_filter or "Not configured"}')
        self.stdout.write(f'LDAP Search base: {cfg.user_search_base or "(base DN)"}')
        self.stdout.write(f'LDAP Bind DN: {cfg.service_dn or "Not configured (anonymous search)"}')

        if not cfg.user_dn_templates and not cfg.search_enabled:
            self.stdout.write(self.style.WARNING(
                'No bind candidates: set LDAP_USER_DN_TEMPLATES or LDAP_USER_SEARCH_FILTER.'
            ))

        if not username:
            self.stdout.write(self.style.WARNING('No username provided. Use --username to test authentication.'))
            return
        if password is None:
            password = getpass('Password: ')

        self.stdout.write(f'Testing authentication for user: {username}')
        try:
            record = BindAuthenticator.from_config(cfg).authenticate(
                UsernamePasswordCredentials(username, password)
            )
        except InvalidCredentials as e:
            self.stdout.write(self.style.ERROR(f'Authentication failed: {e}'))
            return
        except InfrastructureError as e:
            self.stdout.write(self.style.ERROR(f'LDAP error: {e}'))
            return

        self.stdout.write(self.style.SUCCESS(f'Authentication successful: {record.dn}'))
        for name in sorted(record.attributes):
            self.stdout.write(f'  {name}: {record.attributes[name]}')
