"""
Configuration settings for the number porting service
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-me')
    DEBUG = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    TESTING = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # MongoDB Configuration
    MONGO_URI = os.getenv('MONGO_URI', 'mongodb://localhost:27017/number_porting')
    MONGO_DBNAME = os.getenv('MONGO_DBNAME', 'number_porting')

    # CORS Configuration
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',')
        if origin.strip()
    ]

    # Carrier porting API (leave unset to record submissions locally)
    CARRIER_API_URL = os.getenv('CARRIER_API_URL')
    CARRIER_API_KEY = os.getenv('CARRIER_API_KEY')
    CARRIER_API_TIMEOUT = float(os.getenv('CARRIER_API_TIMEOUT', 10))

    # Ported number defaults (monthly rate in cents)
    PORTED_NUMBER_MONTHLY_RATE = int(os.getenv('PORTED_NUMBER_MONTHLY_RATE', 1000))

    # Pagination
    PORTING_DEFAULT_PAGE_LIMIT = int(os.getenv('PORTING_DEFAULT_PAGE_LIMIT', 50))
    PORTING_MAX_PAGE_LIMIT = int(os.getenv('PORTING_MAX_PAGE_LIMIT', 200))

class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')

class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

class TestingConfig(Config):
    """Testing configuration, used with an in-memory database"""
    TESTING = True
    MONGO_DBNAME = 'number_porting_test'
    CARRIER_API_URL = None

# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
