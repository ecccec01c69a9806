"""
Django settings for the location viewer project.

Generated for Django 5.0, using Python 3.12+.
For more information on this file, see
https://docs.djangoproject.com/en/5.0/topics/settings/

For the full list of settings and their values, see
https://docs.djangoproject.com/en/5.0/ref/settings/
"""

import logging
import time
from pathlib import Path

from decouple import Csv, config

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR: Path = Path(__file__).resolve().parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY: str = str(config('SECRET_KEY', default='django-insecure-change-me-in-production'))

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG: bool = config('DEBUG', default=True, cast=bool)

ALLOWED_HOSTS: list[str] = ['*']


# Application definition

INSTALLED_APPS: list[str] = [
    'daphne',
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.staticfiles',
    'rest_framework',
    'channels',
    'viewer.apps.ViewerConfig',
]

MIDDLEWARE: list[str] = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF: str = 'config.urls'

TEMPLATES: list[dict] = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

ASGI_APPLICATION: str = 'config.asgi.application'


# Database
# The viewer keeps no data of its own; the default database only backs the
# contrib apps Django REST Framework expects to be installed.

DATABASES: dict = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}


# Internationalization
# https://docs.djangoproject.com/en/5.0/topics/i18n/

LANGUAGE_CODE: str = 'en-us'

TIME_ZONE: str = 'UTC'

USE_I18N: bool = True

USE_TZ: bool = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.0/howto/static-files/

STATIC_URL: str = 'static/'

DEFAULT_AUTO_FIELD: str = 'django.db.models.BigAutoField'


# REST Framework settings (serializers only decode backend payloads)
REST_FRAMEWORK: dict = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
}


# Tracking backend
TRACKER_API_URL: str = str(config('TRACKER_API_URL', default='http://localhost:5000/api'))
TRACKER_API_TIMEOUT: float = config('TRACKER_API_TIMEOUT', default=10.0, cast=float)

# Viewer behaviour
VIEWER_DEFAULT_LIMIT: int = config('VIEWER_DEFAULT_LIMIT', default=100, cast=int)
VIEWER_DEFAULT_HOURS: int = config('VIEWER_DEFAULT_HOURS', default=24, cast=int)
VIEWER_NOTIFICATION_SECONDS: float = config('VIEWER_NOTIFICATION_SECONDS', default=6.0, cast=float)
VIEWER_CLEAR_ALL_PHRASE: str = str(config('VIEWER_CLEAR_ALL_PHRASE', default='DELETE ALL'))
VIEWER_CLEAR_MACHINE_PHRASE: str = str(config('VIEWER_CLEAR_MACHINE_PHRASE', default='DELETE MACHINE'))
VIEWER_MAP_CENTER: tuple[float, float] = tuple(
    config('VIEWER_MAP_CENTER', default='-12.0464,-77.0428', cast=Csv(float))
)  # type: ignore[assignment]
VIEWER_MAP_ZOOM: int = config('VIEWER_MAP_ZOOM', default=10, cast=int)
VIEWER_TILE_URL: str = str(config(
    'VIEWER_TILE_URL', default='https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png'
))


# Logging configuration

# Add custom TRACE level (below DEBUG)
TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, 'TRACE')


def trace(self, message, *args, **kwargs):
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, message, args, **kwargs)


logging.Logger.trace = trace  # type: ignore[attr-defined]


# Custom filter to set health check requests to TRACE level
class HealthCheckFilter(logging.Filter):
    def filter(self, record):
        if hasattr(record, 'msg') and '/health/' in str(record.msg):
            record.levelno = TRACE_LEVEL
            record.levelname = 'TRACE'
        return True


# Custom formatter that uses local time instead of UTC
class LocalTimeFormatter(logging.Formatter):
    converter = time.localtime

    def formatTime(self, record, datefmt=None):
        """Override formatTime to use local time instead of UTC."""
        ct = self.converter(record.created)
        if datefmt:
            return time.strftime(datefmt, ct)
        s = time.strftime("%Y-%m-%d %H:%M:%S", ct)
        return "%s,%03d" % (s, record.msecs)


LOG_LEVEL: str = str(config('LOG_LEVEL', default='INFO'))

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'filters': {
        'health_check_filter': {
            '()': 'config.settings.HealthCheckFilter',
        },
    },
    'formatters': {
        'verbose': {
            '()': 'config.settings.LocalTimeFormatter',
            'format': '%(asctime)s.%(msecs)03d %(levelname)-7s %(module)s %(message)s',
            'datefmt': '%Y%m%d-%H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
            'filters': ['health_check_filter'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'viewer': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'httpx': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'django.server': {
            'handlers': ['console'],
            'level': TRACE_LEVEL,
            'propagate': False,
        },
    },
}


def _parse_csrf_origins(value: str) -> list[str]:
    """Parse comma-separated CSRF origins from environment."""
    return [s.strip() for s in value.split(',') if s.strip()]


CSRF_TRUSTED_ORIGINS: list[str] = _parse_csrf_origins(
    str(config('CSRF_TRUSTED_ORIGINS', default=''))
)

# Channels configuration
CHANNEL_LAYERS: dict = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer',
    }
}
