import os
from dotenv import load_dotenv

# Load keys from .env
load_dotenv()


def _flag(name, default='false'):
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Security Key (also signs the JWT access tokens)
    SECRET_KEY = os.getenv('SECRET_KEY', 'default_secret_key_if_none_found')
    JWT_EXPIRES_DAYS = int(os.getenv('JWT_EXPIRES_DAYS', '7'))

    # Database Connection (Fixes Render's postgres:// issue automatically)
    uri = os.getenv('DATABASE_URL', 'sqlite:///ledgerly.db')
    if uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)

    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Frontend origins allowed by CORS
    CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',') if o.strip()]

    # === EMAIL CONFIGURATION (SMTP) ===
    # Using Gmail settings by default
    MAIL_SERVER = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('MAIL_PORT', '587'))
    MAIL_USE_TLS = _flag('MAIL_USE_TLS', 'true')
    MAIL_USERNAME = os.getenv('MAIL_USERNAME')  # Loaded from .env
    MAIL_PASSWORD = os.getenv('MAIL_PASSWORD')  # Loaded from .env
    MAIL_DEFAULT_SENDER = os.getenv('MAIL_DEFAULT_SENDER', os.getenv('MAIL_USERNAME'))
    MAIL_SUPPRESS_SEND = _flag('MAIL_SUPPRESS_SEND')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # === USER DEFAULTS ===
    DEFAULT_CURRENCY = 'BRL'
    DEFAULT_LANGUAGE = 'pt-BR'
    DEFAULT_THEME = 'light'
    DEFAULT_GOAL_DAYS = 30


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'noreply@ledgerly.test'
