ONE_DAY = 86_400_000
FIVE_MINUTES = 300_000

DEFAULT_TABLE = "sessions"
DEFAULT_TENANT = "default"
DB_SUFFIX = ".sqlite"
MEMORY_MARKER = ":memory:"
