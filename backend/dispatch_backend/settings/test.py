"""Settings for the test run: local SQLite, in-process Celery and channels."""

from .settings import *

DEBUG = False

# A file-backed test database so threaded tests share one database.
# IMMEDIATE takes the write lock at BEGIN, so concurrent writers queue on the
# busy timeout instead of failing on lock upgrade.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'test_db.sqlite3',
        'OPTIONS': {'timeout': 20, 'transaction_mode': 'IMMEDIATE'},
        'TEST': {'NAME': BASE_DIR / 'test_db.sqlite3'},
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CHANNEL_LAYERS = {
    "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
}

CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = None
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False

PUSH_GATEWAY_BACKEND = "realtime.gateway.LoggingPushGateway"

DISPATCH_STORE_RETRY_DELAY = 0

LOGGING["root"]["level"] = "WARNING"
