import os
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional
from urllib.parse import parse_qs, urlparse

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(BASE_DIR / '.env')

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-gridcall-development-key')
DEBUG = os.environ.get('DJANGO_DEBUG', 'True').lower() == 'true'


def _extend_from_env(
    environ: Mapping[str, str], key: str, base_values: Iterable[str] | None = None
) -> list[str]:
    """Return a list of configuration values extended by environment settings."""

    values = list(base_values or [])
    configured_values = environ.get(key)
    if configured_values:
        for value in (entry.strip() for entry in configured_values.split(',')):
            if value and value not in values:
                values.append(value)
    return values


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    """Return an integer setting, falling back to ``default`` when unset."""

    value = environ.get(key, '').strip()
    if not value:
        return default
    return int(value)


ALLOWED_HOSTS = _extend_from_env(os.environ, 'DJANGO_ALLOWED_HOSTS', ['localhost', '127.0.0.1'])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'gridcall.predictions.apps.PredictionsConfig',
    'gridcall.ergast.apps.ErgastConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'gridcall.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]


def _get_conn_max_age(environ: Mapping[str, str]) -> Optional[int]:
    """Return the configured connection max age, if any."""

    candidates = (
        environ.get('DATABASE_CONN_MAX_AGE'),
        environ.get('POSTGRES_CONN_MAX_AGE'),
    )
    for value in candidates:
        if value:
            return int(value)
    return None


def _build_sqlite_database(base_dir: Path) -> Dict[str, Any]:
    return {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': base_dir / 'db.sqlite3',
    }


def _build_postgres_from_url(url: str, environ: Mapping[str, str]) -> Dict[str, Any]:
    parsed = urlparse(url)
    engine_map = {
        'postgres': 'django.db.backends.postgresql',
        'postgresql': 'django.db.backends.postgresql',
    }
    engine = engine_map.get(parsed.scheme)
    if engine is None:
        raise ValueError(f"Unsupported database scheme '{parsed.scheme}' in DATABASE_URL")

    options: Dict[str, str] = {}
    if parsed.query:
        options = {key: values[-1] for key, values in parse_qs(parsed.query).items() if values}

    config: Dict[str, Any] = {
        'ENGINE': engine,
        'NAME': parsed.path.lstrip('/'),
        'USER': parsed.username or '',
        'PASSWORD': parsed.password or '',
        'HOST': parsed.hostname or '',
        'PORT': str(parsed.port) if parsed.port else '',
    }

    conn_max_age = _get_conn_max_age(environ)
    if conn_max_age is not None:
        config['CONN_MAX_AGE'] = conn_max_age
    if options:
        config['OPTIONS'] = options

    return config


def _build_postgres_from_env(environ: Mapping[str, str]) -> Optional[Dict[str, Any]]:
    database_name = environ.get('POSTGRES_DB')
    if not database_name:
        return None

    config: Dict[str, Any] = {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': database_name,
        'USER': environ.get('POSTGRES_USER', ''),
        'PASSWORD': environ.get('POSTGRES_PASSWORD', ''),
        'HOST': environ.get('POSTGRES_HOST', 'localhost'),
        'PORT': environ.get('POSTGRES_PORT', '5432'),
    }

    conn_max_age = _get_conn_max_age(environ)
    if conn_max_age is not None:
        config['CONN_MAX_AGE'] = conn_max_age
    ssl_mode = environ.get('POSTGRES_SSL_MODE')
    if ssl_mode:
        config['OPTIONS'] = {'sslmode': ssl_mode}

    return config


def _build_default_database(base_dir: Path, environ: Mapping[str, str]) -> Dict[str, Any]:
    database_url = environ.get('DATABASE_URL')
    if database_url:
        return _build_postgres_from_url(database_url, environ)

    postgres_config = _build_postgres_from_env(environ)
    if postgres_config:
        return postgres_config

    return _build_sqlite_database(base_dir)


DATABASES = {
    'default': _build_default_database(BASE_DIR, os.environ),
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Test Configuration
TESTING = 'test' in sys.argv or 'pytest' in sys.argv[0] if sys.argv else False

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': (
            'whitenoise.storage.CompressedStaticFilesStorage'
            if DEBUG or TESTING
            else 'whitenoise.storage.CompressedManifestStaticFilesStorage'
        ),
    },
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'loggers': {
        'gridcall': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Prediction locking
# Predictions close this many minutes before the governing session starts.
PREDICTION_LOCK_BUFFER_MINUTES = _get_int(os.environ, 'PREDICTION_LOCK_BUFFER_MINUTES', 15)

# Scoring job configuration
AUTO_SCORE_PREDICTIONS = os.environ.get('AUTO_SCORE_PREDICTIONS', 'true').lower() == 'true'
SCORING_MAX_SESSIONS_PER_RUN = _get_int(os.environ, 'SCORING_MAX_SESSIONS_PER_RUN', 10)

# Official results API (Jolpica mirror of the Ergast API)
ERGAST_BASE_URL = os.environ.get('ERGAST_BASE_URL', 'https://api.jolpi.ca/ergast/f1')
ERGAST_TIMEOUT = _get_int(os.environ, 'ERGAST_TIMEOUT', 30)
