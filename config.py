import os
from datetime import timedelta
from sqlalchemy.pool import QueuePool
from urllib.parse import urlparse
import pymysql
pymysql.install_as_MySQLdb()

class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change_this_secret_key')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": QueuePool,
        "pool_size": 5,
        "max_overflow": 2,
        "pool_timeout": 10
    }

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = [o.strip() for o in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",") if o.strip()]

    # Bearer tokens
    JWT_SECRET = os.getenv("JWT_SECRET", SECRET_KEY)
    JWT_EXPIRES = timedelta(hours=int(os.getenv("JWT_EXPIRES_HOURS", "24")))

    # External judge (Judge0 compatible)
    JUDGE0_API_URL = os.getenv("JUDGE0_API_URL", "http://localhost:2358")
    JUDGE0_API_KEY = os.getenv("JUDGE0_API_KEY")
    JUDGE0_REQUEST_TIMEOUT = float(os.getenv("JUDGE0_REQUEST_TIMEOUT", "15"))
    JUDGE0_CPU_TIME_LIMIT = float(os.getenv("JUDGE0_CPU_TIME_LIMIT", "5"))
    JUDGE0_MEMORY_LIMIT = int(os.getenv("JUDGE0_MEMORY_LIMIT", "512000"))
    JUDGE_MAX_WORKERS = int(os.getenv("JUDGE_MAX_WORKERS", "8"))
    JUDGE_SYNC_EXECUTION = os.getenv("JUDGE_SYNC_EXECUTION", "False") == "True"

    # Attempt timing and scoring
    UNBOUNDED_ATTEMPT_CAP_MINUTES = int(os.getenv("UNBOUNDED_ATTEMPT_CAP_MINUTES", "180"))
    CODING_SCORE_POLICY = os.getenv("CODING_SCORE_POLICY", "proportional")

class DevConfig(Config):
    """Development Configuration"""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI', 'mysql+pymysql://root:@localhost/gradeupnow_lms')

class TestConfig(Config):
    DEBUG = False
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    # in-memory sqlite needs the single shared connection flask-sqlalchemy sets up
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET = "test-secret"
    JUDGE_SYNC_EXECUTION = True
    UNBOUNDED_ATTEMPT_CAP_MINUTES = 180
    CODING_SCORE_POLICY = "proportional"

class ProdConfig(Config):
    """Production Configuration (Heroku deployment)"""
    DEBUG = False

    raw_db_url = os.getenv('DATABASE_URL')

    if raw_db_url:
        if raw_db_url.startswith("mysql://"):
            raw_db_url = raw_db_url.replace("mysql://", "mysql+pymysql://", 1)

        parsed_url = urlparse(raw_db_url)
        SQLALCHEMY_DATABASE_URI = f"{parsed_url.scheme}://{parsed_url.netloc}{parsed_url.path}"
    else:
        SQLALCHEMY_DATABASE_URI = os.getenv('JAWSDB_URL', 'sqlite:///gradeupnow.db')

ENV = os.getenv('FLASK_ENV', 'production').lower()

config_dict = {
    "development": DevConfig,
    "testing": TestConfig,
    "production": ProdConfig
}

CurrentConfig = config_dict.get(ENV, ProdConfig)
