from django.apps import AppConfig


class LdapBindConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'ldap_bind'
    verbose_name = 'LDAP bind 認証'
