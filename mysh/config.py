import os
import sys

# Prompt shown by the read loop
PROMPT = os.getenv("MYSH_PROMPT", "mysh> ")

# Trace spawned pids / collected statuses on stderr
DEBUG = bool(os.getenv("MYSH_DEBUG"))

# Exit statuses
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_SYNTAX = 2
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127
EXIT_SIGNAL_BASE = 128

# Permission bits for files created by > and >>
REDIRECT_FILE_MODE = 0o644

# Cursor home + erase display
CLEAR_SEQUENCE = "\033[H\033[2J"


def debug(msg):
    """Print a trace line on stderr when MYSH_DEBUG is set"""
    if DEBUG:
        print(f"mysh: debug: {msg}", file=sys.stderr)
