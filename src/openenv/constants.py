"""Shared constants for OpenEnv."""

PRODUCTION_KEY = "Production"
TESTING_KEY = "Testing"
DEVELOPMENT_KEY = "Development"

PRODUCTION_MARKER = r"C:\PRODUCTION.ini"
APP_PACKAGE_PATH_TOKEN = "AppData\\Local\\Apps\\2.0\\"
PRIMARY_PLATFORM = "win32"

CONNECTION_NAME_TOKEN = "Connection"
CONNECTION_NAME_DELIMITER = "_"

CATALOG_SUFFIX_LIVE = "_Live"
CATALOG_SUFFIX_TEST = "_Test"
CATALOG_SUFFIX_DEV = "_Dev"

MAX_POOL_SIZE = 100
ODBC_DRIVER = "ODBC Driver 18 for SQL Server"
MASTER_CATALOG = "master"

BACKUP_EXTENSION = ".bak"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M"

COPY_RETRY_COUNT = 5
COPY_RETRY_DELAY_SECONDS = 2.0

DEFAULT_URL = "http://localhost"
ALLOWED_URL_SCHEMES = ("http", "https")
