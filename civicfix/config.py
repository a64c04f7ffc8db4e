# civicfix/config.py
import os
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '..', '.env'))


def _database_url():
    db_url = os.environ.get('DATABASE_URL')
    if db_url and db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)
    return db_url or 'sqlite:///' + os.path.join(basedir, '..', 'civicfix.db')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'a-very-secret-key-that-is-long-and-random')

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens
    TOKEN_MAX_AGE = int(os.environ.get('TOKEN_MAX_AGE', 60 * 60 * 24 * 7))

    # Optional webhook that receives domain events (issue.created, ...)
    EVENTS_WEBHOOK_URL = os.environ.get('EVENTS_WEBHOOK_URL')
    EVENTS_TIMEOUT = float(os.environ.get('EVENTS_TIMEOUT', 3))

    PAYMENT_CURRENCY = os.environ.get('PAYMENT_CURRENCY', 'INR')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    EVENTS_WEBHOOK_URL = None
    LOG_LEVEL = 'DEBUG'
