"""
Environment configuration for LocalFinds.

Every setting that varies between deployments is read here, once, and
imported by `localFinds.settings`. Values come from the process environment,
with a `.env` file next to this module loaded first.
"""
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

load_dotenv(dotenv_path=BASE_DIR / '.env')

_CASTS = {
    bool: lambda raw: raw.lower() in ('true', '1', 'yes', 'on'),
    int: int,
    float: float,
    list: lambda raw: [item.strip() for item in raw.split(',') if item.strip()],
}


def get_env_variable(var_name, default=None, required=False, cast=str):
    """
    Read `var_name`, falling back to `default`, and convert it with `cast`
    (str, int, float, bool or a comma separated list).

    Raises:
        ValueError: if `required` and the variable is unset with no default
    """
    value = os.getenv(var_name, default)
    if value is None:
        if required:
            raise ValueError(f"Required environment variable '{var_name}' is not set")
        return None
    return _CASTS.get(cast, str)(value)


# Test runs (manage.py test or pytest) get in-memory backends
TESTING = (
    len(sys.argv) > 1 and sys.argv[1] == 'test'
) or 'pytest' in sys.modules or get_env_variable('LOCALFINDS_TESTING', default='False', cast=bool)

# Django Settings
SECRET_KEY = get_env_variable('DJANGO_SECRET_KEY', required=not TESTING) or 'localfinds-test-secret-key'
DEBUG = get_env_variable('DJANGO_DEBUG', default='False', cast=bool)
ALLOWED_HOSTS = get_env_variable('DJANGO_ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=list)
PORT = get_env_variable('PORT', default='5000', cast=int)

# Frontend origin, used for CORS and the websocket origin check
FRONTEND_URL = get_env_variable('FRONTEND_URL', default='http://localhost:5173')

# Database Settings
DB_ENGINE = get_env_variable('DB_ENGINE', default='django.db.backends.postgresql')
DB_NAME = get_env_variable('DB_NAME', default='localfinds')
DB_USER = get_env_variable('DB_USER', default='postgres')
DB_PASSWORD = get_env_variable('DB_PASSWORD', default='')
DB_HOST = get_env_variable('DB_HOST', default='localhost')
DB_PORT = get_env_variable('DB_PORT', default='5432')

# JWT Settings
JWT_ACCESS_TOKEN_MINUTES = get_env_variable('JWT_ACCESS_TOKEN_MINUTES', default='60', cast=int)
PASSWORD_RESET_SESSION_MINUTES = get_env_variable('PASSWORD_RESET_SESSION_MINUTES', default='15', cast=int)

# Email Settings
EMAIL_BACKEND = get_env_variable('EMAIL_BACKEND', default='django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = get_env_variable('EMAIL_HOST', default='smtp.gmail.com')
EMAIL_PORT = get_env_variable('EMAIL_PORT', default='587', cast=int)
EMAIL_USE_TLS = get_env_variable('EMAIL_USE_TLS', default='True', cast=bool)
EMAIL_HOST_USER = get_env_variable('EMAIL_HOST_USER', default='')
EMAIL_HOST_PASSWORD = get_env_variable('EMAIL_HOST_PASSWORD', default='')
DEFAULT_FROM_EMAIL = get_env_variable('DEFAULT_FROM_EMAIL', default='noreply@localfinds.app')
CONTACT_EMAIL = get_env_variable('CONTACT_EMAIL', default='support@localfinds.app')

# Redis Settings
REDIS_HOST = get_env_variable('REDIS_HOST', default='localhost')
REDIS_PORT = get_env_variable('REDIS_PORT', default='6379', cast=int)
REDIS_DB = get_env_variable('REDIS_DB', default='0', cast=int)
USE_REDIS_CACHE = get_env_variable('USE_REDIS_CACHE', default='False', cast=bool)
USE_REDIS_CHANNEL_LAYER = get_env_variable('USE_REDIS_CHANNEL_LAYER', default='False', cast=bool)

# Invoice artifacts
INVOICES_DIR = Path(get_env_variable('INVOICES_DIR', default=str(BASE_DIR / 'invoices')))

# Sentry Settings
SENTRY_DSN = get_env_variable('SENTRY_DSN', default='')

# Security Settings
SECURE_SSL_REDIRECT = get_env_variable('SECURE_SSL_REDIRECT', default='False', cast=bool)
SESSION_COOKIE_SECURE = get_env_variable('SESSION_COOKIE_SECURE', default='False', cast=bool)
CSRF_COOKIE_SECURE = get_env_variable('CSRF_COOKIE_SECURE', default='False', cast=bool)
SECURE_BROWSER_XSS_FILTER = get_env_variable('SECURE_BROWSER_XSS_FILTER', default='True', cast=bool)
SECURE_CONTENT_TYPE_NOSNIFF = get_env_variable('SECURE_CONTENT_TYPE_NOSNIFF', default='True', cast=bool)
X_FRAME_OPTIONS = get_env_variable('X_FRAME_OPTIONS', default='DENY')

# Celery Settings
CELERY_BROKER_URL = get_env_variable('CELERY_BROKER_URL', default='redis://localhost:6379/1')
CELERY_RESULT_BACKEND = get_env_variable('CELERY_RESULT_BACKEND', default='django-db')
