"""
Django settings for ldap_bind_site project.

LDAP 関連の値は環境変数から上書きできる。
"""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# .env があれば読む (既存の環境変数が優先)
load_dotenv(BASE_DIR / ".env")


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name):
    return [v.strip() for v in os.environ.get(name, '').split(';') if v.strip()]


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-ldap-bind-dev-key')
DEBUG = _env_bool('DJANGO_DEBUG', True)
ALLOWED_HOSTS = _env_list('DJANGO_ALLOWED_HOSTS') or ['localhost', '127.0.0.1']

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'ldap_bind',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'ldap_bind_site.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_USER_MODEL = 'ldap_bind.User'

AUTHENTICATION_BACKENDS = [
    'ldap_bind.backends.LDAPBindBackend',
    'django.contrib.auth.backends.ModelBackend',
]

LANGUAGE_CODE = 'ja'
TIME_ZONE = 'Asia/Tokyo'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

# ================== LDAP ==================
LDAP_SERVER_URL = os.environ.get('LDAP_SERVER_URL', 'ldap://localhost:389')
LDAP_BASE_DN = os.environ.get('LDAP_BASE_DN', 'dc=example,dc=com')
# {0} (または {username}) にエスケープ済みユーザ名が入る。設定順に試行。
LDAP_USER_DN_TEMPLATES = _env_list('LDAP_USER_DN_TEMPLATES') or ['uid={0},ou=people']
# テンプレートで bind できない場合の検索フォールバック (空なら無効)
LDAP_USER_SEARCH_BASE = os.environ.get('LDAP_USER_SEARCH_BASE', '')
LDAP_USER_SEARCH_FILTER = os.environ.get('LDAP_USER_SEARCH_FILTER', '')
LDAP_USER_SEARCH_SUBTREE = _env_bool('LDAP_USER_SEARCH_SUBTREE', True)
LDAP_USER_ATTRIBUTES = None
LDAP_BIND_DN = os.environ.get('LDAP_BIND_DN') or None
LDAP_BIND_PASSWORD = os.environ.get('LDAP_BIND_PASSWORD') or None
LDAP_USE_SSL = _env_bool('LDAP_USE_SSL')
LDAP_FORCE_STARTTLS = _env_bool('LDAP_FORCE_STARTTLS')
LDAP_TLS_INSECURE = _env_bool('LDAP_TLS_INSECURE')
LDAP_CONNECT_TIMEOUT = int(os.environ.get('LDAP_CONNECT_TIMEOUT', '10'))
LDAP_RECEIVE_TIMEOUT = int(os.environ.get('LDAP_RECEIVE_TIMEOUT', '10'))
LDAP_USER_ATTR_MAP = {
    'first_name': 'givenName',
    'last_name': 'sn',
    'email': 'mail',
}
LDAP_AUTH_MESSAGES = {}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'django.security.authentication': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        # 候補ごとの bind 試行など詳細トレース
        'ldap_bind': {
            'handlers': ['console'],
            'level': os.environ.get('LDAP_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
