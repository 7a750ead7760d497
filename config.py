"""
Configuration for the Resource Admin application
"""

import os
from dataclasses import dataclass


class Config:
    """Default Flask configuration"""

    SECRET_KEY = os.environ.get('SECRET_KEY', 'your-secret-key-change-in-production')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///resource_admin.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Admin console options
    ADMIN_SITE_TITLE = 'Admin'
    ADMIN_UPLOAD_DIR = 'uploads'
    ADMIN_DEFAULT_PER_PAGE = 20
    ADMIN_SEARCH_THRESHOLD = 50
    ADMIN_SESSION_TTL = 24  # hours

    LOG_LEVEL = 'INFO'


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    ADMIN_DEFAULT_PER_PAGE = 10
    ADMIN_SEARCH_THRESHOLD = 5


@dataclass(frozen=True)
class AdminSettings:
    """Read-only view of the admin options, built once per application"""

    site_title: str = 'Admin'
    upload_dir: str = 'uploads'
    default_per_page: int = 20
    search_threshold: int = 50
    session_ttl: int = 24

    @classmethod
    def from_mapping(cls, config):
        """Build settings from a Flask config (or any mapping)"""
        defaults = cls()
        per_page = int(config.get('ADMIN_DEFAULT_PER_PAGE', defaults.default_per_page))
        return cls(
            site_title=config.get('ADMIN_SITE_TITLE', defaults.site_title),
            upload_dir=config.get('ADMIN_UPLOAD_DIR', defaults.upload_dir),
            default_per_page=max(per_page, 1),
            search_threshold=int(config.get('ADMIN_SEARCH_THRESHOLD', defaults.search_threshold)),
            session_ttl=int(config.get('ADMIN_SESSION_TTL', defaults.session_ttl)),
        )
