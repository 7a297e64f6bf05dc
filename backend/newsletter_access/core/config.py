# newsletter_access/core/config.py
import os
import logging
from dotenv import load_dotenv
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings

from newsletter_access.models.enums import RestrictedViewPolicy

# --- Path Setup & .env Loading ---
# .env lives in the backend root, two levels up from core
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_PATH = BASE_DIR / '.env'

if ENV_PATH.is_file():
    load_dotenv(dotenv_path=ENV_PATH)

# --- Pydantic Settings Class ---
class Settings(BaseSettings):
    PROJECT_NAME: str = "Newsletter Access Engine"
    DEBUG: bool = False
    VERSION: str = "0.1.0"

    # Database Settings
    MONGODB_URL: Optional[str] = None
    DB_NAME: str = "newsletter_dev"

    # Collection names (mirror the hosted backend's table names)
    USER_ROLES_COLLECTION: str = "user_roles"
    CLASSES_COLLECTION: str = "classes"
    ARTICLES_COLLECTION: str = "articles"
    TEACHER_ASSIGNMENT_COLLECTION: str = "teacher_class_assignment"
    CHILD_ENROLLMENT_COLLECTION: str = "child_class_enrollment"
    FAMILY_ENROLLMENT_COLLECTION: str = "family_enrollment"

    # Access Policy Settings
    RESTRICTED_VIEW_POLICY: RestrictedViewPolicy = RestrictedViewPolicy.CLASS_MEMBERSHIP
    AGGREGATION_TIMEOUT_SECONDS: Optional[float] = None

settings = Settings()

# --- Logging Setup ---
LOG_LEVEL_NAME: str = os.getenv("LOG_LEVEL", "WARNING").upper()
if settings.DEBUG:
    LOG_LEVEL_NAME = "DEBUG"

ACTUAL_LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.WARNING)

logging.basicConfig(
    level=ACTUAL_LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logging.getLogger('motor').setLevel(logging.WARNING)
logging.getLogger('pymongo').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# --- Validate settings after loading ---
if not settings.MONGODB_URL:
    logger.warning("MONGODB_URL environment variable is not set. Motor-backed stores will be unavailable.")

if settings.RESTRICTED_VIEW_POLICY == RestrictedViewPolicy.ANY_ROLE:
    logger.warning("RESTRICTED_VIEW_POLICY=any_role: class-restricted articles are viewable by every known role.")

if settings.DEBUG:
    logger.debug(f"PROJECT_NAME: {settings.PROJECT_NAME}")
    logger.debug(f"DB_NAME: {settings.DB_NAME}")
    logger.debug(f"RESTRICTED_VIEW_POLICY: {settings.RESTRICTED_VIEW_POLICY.value}")
    logger.debug(f"AGGREGATION_TIMEOUT_SECONDS: {settings.AGGREGATION_TIMEOUT_SECONDS}")
    logger.debug(f"MONGODB_URL Set: {'Yes' if settings.MONGODB_URL else 'No'}")

PROJECT_NAME = settings.PROJECT_NAME
DEBUG = settings.DEBUG
VERSION = settings.VERSION
MONGODB_URL = settings.MONGODB_URL
DB_NAME = settings.DB_NAME
