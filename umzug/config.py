import os

from dotenv import load_dotenv

# Values below are read at import time, so .env has to be loaded first
load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes', 'on')


class BaseConfig:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///umzug.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False

    # Admin API guard, sent as X-Admin-Secret; unset disables the check
    ADMIN_SECRET = os.getenv('ADMIN_SECRET')
    # Base URL used in emailed links; falls back to the request host
    PUBLIC_URL = os.getenv('PUBLIC_URL')

    SMTP_HOST = os.getenv('SMTP_HOST', 'localhost')
    SMTP_PORT = int(os.getenv('SMTP_PORT', '465'))
    SMTP_USERNAME = os.getenv('SMTP_USERNAME')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD')
    SMTP_USE_TLS = _env_bool('SMTP_USE_TLS', 'true')
    SMTP_TIMEOUT = int(os.getenv('SMTP_TIMEOUT', '30'))
    MAIL_FROM = os.getenv('MAIL_FROM', 'noreply@umzug-unit.ch')

    NUMBER_ALLOCATION_RETRIES = int(os.getenv('NUMBER_ALLOCATION_RETRIES', '3'))
    INVOICE_PAYMENT_DAYS = int(os.getenv('INVOICE_PAYMENT_DAYS', '30'))


class DevConfig(BaseConfig):
    DEBUG = True
    ENV = 'development'


class TestConfig(BaseConfig):
    TESTING = True
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    ADMIN_SECRET = None
    PUBLIC_URL = 'https://offerten.example.ch'


class ProdConfig(BaseConfig):
    DEBUG = False
    ENV = 'production'
    SESSION_COOKIE_SECURE = True


CONFIGS = {
    'development': DevConfig,
    'testing': TestConfig,
    'production': ProdConfig,
}
