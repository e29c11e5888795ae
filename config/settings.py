import os
import dj_database_url
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# Security
DEBUG = os.getenv('DEBUG', '0') == '1'
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-key-CHANGE-IN-PRODUCTION')

# Parse ALLOWED_HOSTS from env (comma-separated)
ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')

# --- 1. APPS ---
INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',

    #Local Apps
    'students',
    'academics',
    'gradebook',
]

MIDDLEWARE = []

# --- 2. DATABASE ---
DATABASES = {
    'default': dj_database_url.config(
        default=os.getenv('DATABASE_URL', f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=600,  # Connection pooling
        conn_health_checks=True,  # Health checks
    )
}

# --- 3. ANALYTICS ENGINE ---
# Read lazily through gradebook.config; see that module for defaults.
GRADEBOOK_ATTENDANCE_THRESHOLD = float(os.getenv('GRADEBOOK_ATTENDANCE_THRESHOLD', '75.0'))
GRADEBOOK_PASS_THRESHOLD = float(os.getenv('GRADEBOOK_PASS_THRESHOLD', '40.0'))
GRADEBOOK_REPORT_VIOLATIONS = os.getenv('GRADEBOOK_REPORT_VIOLATIONS', '0') == '1'
GRADEBOOK_EXPORT_DIR = os.getenv('GRADEBOOK_EXPORT_DIR', str(BASE_DIR / 'reports'))
GRADEBOOK_EXPORT_RETENTION_DAYS = int(os.getenv('GRADEBOOK_EXPORT_RETENTION_DAYS', '30'))
GRADEBOOK_TOP_PERFORMERS_LIMIT = int(os.getenv('GRADEBOOK_TOP_PERFORMERS_LIMIT', '5'))
GRADEBOOK_DATA_GATEWAY = os.getenv('GRADEBOOK_DATA_GATEWAY', 'django')

# --- 4. LOGGING ---
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'gradebook': {
            'handlers': ['console'],
            'level': os.getenv('GRADEBOOK_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}

# --- 5. INTERNATIONALIZATION ---
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# --- 6. DEFAULT PRIMARY KEY ---
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
