"""Code that runs inside the sandbox container, and the run-directory
contract it shares with the host.
"""

CONTEXT_FILE = "context.json"
STATUS_FILE = "status.json"
JOURNAL_FILE = "journal.md"
PATCHES_DIR = "patches"
ENV_FILE = ".env"

EXIT_SUCCESS = 0
EXIT_CRASH = 1
EXIT_NO_PATCHES = 2

NO_PATCHES_ERROR = "Agent exited without producing patches"
