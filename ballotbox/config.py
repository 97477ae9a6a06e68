# config.py

import os
from dotenv import load_dotenv

# Load environment variables before the config classes read them
ENV = os.getenv('ENV', 'production')

if ENV == 'testing':
    load_dotenv('.env.test')
else:
    load_dotenv('.env')


class Config:
    """Base configuration with default settings."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'default_secret_key')
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///./ballotbox.db')
    SESSION_COOKIE = 'session'
    SESSION_MAX_AGE = int(os.getenv('SESSION_MAX_AGE', 1800))
    HTTPS_ONLY = False
    SAME_SITE = 'lax'
    ADMIN_USERNAME = os.getenv('ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'admin')
    TALLY_PAGE_SIZE = int(os.getenv('TALLY_PAGE_SIZE', 1000))
    TALLY_MAX_PAGES = int(os.getenv('TALLY_MAX_PAGES', 10000))
    RESET_CONFIRMATION_PHRASE = 'RESET ALL VOTES'
    TESTING = False
    DEBUG = False

class ProductionConfig(Config):
    """Production configuration settings."""
    SECRET_KEY = os.getenv('SECRET_KEY')
    DATABASE_URL = os.getenv('DATABASE_URL', Config.DATABASE_URL)
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')
    HTTPS_ONLY = True  # Ensure cookies are only sent over HTTPS
    DEBUG = False

class TestingConfig(Config):
    """Testing configuration settings."""
    SECRET_KEY = os.getenv('TEST_SECRET_KEY', 'test_secret_key')
    DATABASE_URL = os.getenv('TEST_DATABASE_URL', 'sqlite:///./test_ballotbox.db')
    ADMIN_USERNAME = os.getenv('TEST_ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD = os.getenv('TEST_ADMIN_PASSWORD', 'test_admin_password')
    SESSION_COOKIE = 'test_session'
    TESTING = True
    DEBUG = True


if ENV == 'testing':
    app_config = TestingConfig()
else:
    app_config = ProductionConfig()
