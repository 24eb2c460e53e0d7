#!/usr/bin/env python

"""
    Configurations for Inventario

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import os


# Determine environment
TESTING = os.getenv("TESTING", "false").lower() == "true"

# API server configuration
HOST = os.environ.get('INVENTARIO_HOST', 'localhost')
PORT = int(os.environ.get('INVENTARIO_PORT', 8080))
WORKERS = int(os.environ.get('INVENTARIO_WORKERS', 1))
DEBUG = bool(int(os.environ.get('INVENTARIO_DEBUG', 0)))
LOG_LEVEL = os.environ.get('INVENTARIO_LOG_LEVEL', 'info')
SSL_CRT = os.environ.get('INVENTARIO_SSL_CRT')
SSL_KEY = os.environ.get('INVENTARIO_SSL_KEY')
CORS_ORIGINS = [
    origin.strip() for origin in
    os.environ.get('INVENTARIO_CORS_ORIGINS', 'http://localhost:3000').split(',')
    if origin.strip()
]

# Signs the staff session cookies
SEED = os.environ.get('INVENTARIO_SEED', 'inventario-dev-seed')

OPTIONS = {
    'host': HOST,
    'port': PORT,
    'log_level': LOG_LEVEL,
    'reload': DEBUG,
    'workers': WORKERS,
}
if SSL_CRT and SSL_KEY:
    OPTIONS['ssl_keyfile'] = SSL_KEY
    OPTIONS['ssl_certfile'] = SSL_CRT

DB_CONFIG = {
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASSWORD'),
    'host': os.environ.get('DB_HOST', 'localhost'),
    'port': int(os.environ.get('DB_PORT', '5432')),
    'dbname': os.environ.get('DB_NAME', 'inventario'),
}

# Database configuration
DB_URI = (
    "sqlite:///:memory:" if TESTING else
    'postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}'.format(**DB_CONFIG)
)

__all__ = [
    'HOST', 'PORT', 'DEBUG', 'LOG_LEVEL', 'OPTIONS', 'CORS_ORIGINS',
    'SEED', 'DB_URI', 'DB_CONFIG', 'TESTING'
]
