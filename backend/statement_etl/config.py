# Statement ETL Configuration
import os


class Config:
    ALLOWED_EXTENSIONS = {'csv', 'txt', 'xlsx', 'xls', 'pdf', 'docx', 'doc'}
    DEFAULT_BILLING_TYPE = "student"

    # Header discovery
    HEADER_SCAN_ROWS = 30
    HEADER_MIN_MATCHES = 5
    DOCX_HEADER_SCAN_LINES = 15

    # Page-text reconstruction
    Y_ROUND_DIGITS = 1          # group fragments on y rounded to 0.1
    COLUMN_GAP_RATIO = 1.5      # gap > ratio * previous width -> column separator
    COLUMN_SEPARATOR = "\t"

    # Upload surface
    MAX_UPLOAD_MB = float(os.environ.get('MAX_UPLOAD_MB', 10))
    LOG_FILE = os.environ.get('LOG_FILE', 'server.log')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://localhost:3000').split(',') if o.strip()]
