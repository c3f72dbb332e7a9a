"""Constants used throughout Nitpix."""


# Review directory layout
REVIEW_DIR_NAME = ".review"
QUEUE_FILE_NAME = "queue.json"
BACKUP_SUFFIX = ".bak"
TEMP_SUFFIX = ".tmp"
SCREENSHOTS_DIR_NAME = "screenshots"
CONFIG_FILE_NAME = "config.json"

QUEUE_VERSION = 1

# PNG magic bytes
PNG_SIGNATURE = b"\x89PNG"

# Lower value wins
PRIORITY_ORDER = {
    "high": 0,
    "medium": 1,
    "low": 2,
}

# Server defaults
DEFAULT_PORT = 4173

# Agent defaults
AGENT_EXECUTABLE = "claude"
AGENT_INSTALL_URL = "https://docs.anthropic.com/en/docs/claude-code"
DEFAULT_ALLOWED_TOOLS = "Edit,Write,Read,Bash(nitpix:*),Glob,Grep"
DEFAULT_MAX_TURNS = 25
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_CRASHES = 3

# Timeout values (seconds)
DEFAULT_AGENT_TIMEOUT = 600  # 10 minutes
KILL_GRACE_PERIOD = 5
SHUTDOWN_WAIT = 5
RECONNECT_BASE_DELAY = 1
RECONNECT_MAX_DELAY = 30
IDLE_POLL_INTERVAL = 5

# Activity summaries
TEXT_SUMMARY_LENGTH = 80
COMMAND_SUMMARY_LENGTH = 60
READ_CHUNK_SIZE = 4096

# Event names
EVENT_TASK_CREATED = "task_created"
EVENT_TASK_UPDATED = "task_updated"
EVENT_TASK_DELETED = "task_deleted"
EVENT_TASK_ACTIVITY = "task_activity"
EVENT_TASK_CANCEL = "task_cancel"
