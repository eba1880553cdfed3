"""
Django settings for school_ledger project.

Scope:
- Fiscal years and chart of accounts (GL heads)
- Fee structures, invoicing and payment collection
- Expenses, salary structures and payroll runs
- Ledger reports
"""
import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


DEBUG = os.getenv('DJANGO_DEBUG', 'False').lower() in {'1', 'true', 'yes'}
SECRET_KEY = os.getenv(
    'DJANGO_SECRET_KEY',
    'change-this-secret-key-in-production-7c1d0e4b2a9f4f1e8b6d3c5a0e9f2b71',
)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')
    if host.strip()
]


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'apps.core.audit.apps.AuditConfig',
    'apps.core.fiscal_years.apps.FiscalYearsConfig',
    'apps.core.students.apps.StudentsConfig',
    'apps.core.hr.apps.HrConfig',
    'apps.finance.accounts.apps.AccountsConfig',
    'apps.finance.fees.apps.FeesConfig',
    'apps.finance.expenses.apps.ExpensesConfig',
    'apps.finance.payroll.apps.PayrollConfig',
    'apps.operations.reports.apps.ReportsConfig',
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


ROOT_URLCONF = 'school_ledger.urls'

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
        'NAME': os.getenv('LEDGER_DB_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Asia/Kathmandu'
USE_I18N = True
USE_TZ = True


STATIC_URL = 'static/'


CSRF_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_SECURE = not DEBUG


LEDGER_LOG_LEVEL = os.getenv('LEDGER_LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'apps': {
            'handlers': ['console'],
            'level': LEDGER_LOG_LEVEL,
            'propagate': True,
        },
    },
}


# Explicit GL head codes tried before the name-matching heuristics.
LEDGER_GL_HEAD_CODES = {
    'cash': os.getenv('LEDGER_CASH_HEAD_CODE', ''),
    'bank': os.getenv('LEDGER_BANK_HEAD_CODE', ''),
    'teacher_salary': os.getenv('LEDGER_TEACHER_SALARY_HEAD_CODE', ''),
    'staff_salary': os.getenv('LEDGER_STAFF_SALARY_HEAD_CODE', ''),
    'salary': os.getenv('LEDGER_SALARY_HEAD_CODE', ''),
}
