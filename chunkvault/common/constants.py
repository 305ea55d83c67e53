"""Constants used throughout the application."""

# Manifest file written next to the split output
MANIFEST_NAME = "manifest.json"

# Manifest schema version
MANIFEST_VERSION = "1.0"

# Algorithm labels recorded in the manifest
CIPHER_ALGORITHM = "AES-256-CBC-PKCS7"
DIGEST_ALGORITHM = "SHA-256"

# Number of chunks when the caller does not ask for a specific count
DEFAULT_CHUNK_COUNT = 5

# Extension recorded when the input path has none
DEFAULT_EXTENSION = "txt"

# Stem of the reconstructed output file
RECONSTRUCTED_STEM = "reconstructed_file"

# Key and IV sizes in bytes
KEY_SIZE = 32
IV_SIZE = 16

# Maximum number of concurrent transfers
MAX_CONCURRENT_UPLOADS = 5
MAX_CONCURRENT_DOWNLOADS = 5

# Retry defaults for uploads
MAX_RETRY_ATTEMPTS = 5
RETRY_BASE_DELAY = 0.5
RETRY_MAX_DELAY = 30.0
RETRY_MAX_ELAPSED = 120.0
RETRY_JITTER = 0.1

# Per-request HTTP timeout (seconds)
REQUEST_TIMEOUT = 60.0

# Non-5xx HTTP statuses treated as transient by remote stores
TRANSIENT_HTTP_STATUSES = frozenset({408, 429})
