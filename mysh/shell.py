import os
import signal
import sys

from mysh import config
from mysh.builtin import is_builtin, run_builtin
from mysh.config import debug
from mysh.errors import OrchestrationError, ParseError
from mysh.executor import execute_pipeline
from mysh.parser import parse_line
from mysh.process import reap_zombies


def read_line(prompt):
    """
    Show the prompt and read one line.
    Returns: the line without its newline, or None at end of input
    """
    try:
        return input(prompt)
    except EOFError:
        return None
    except KeyboardInterrupt:
        # Ctrl+C at the prompt drops the line, does not leave the shell
        print()
        return ""


class Shell:
    """
    Interpreter state: working directory, last status, running flag.

    The working directory lives here instead of in the process (no
    os.chdir), so independent Shell objects never see each other's `cd`.
    """

    def __init__(self, cwd=None, prompt=config.PROMPT):
        self.cwd = os.path.abspath(cwd if cwd is not None else os.getcwd())
        self.prompt = prompt
        self.last_status = config.EXIT_SUCCESS
        self.running = True

    def execute_line(self, line):
        """
        Parse and run one command line.
        Returns: exit status of the line
        """
        try:
            pipeline = parse_line(line)
        except ParseError as e:
            print(f"mysh: syntax error: {e}", file=sys.stderr)
            self.last_status = config.EXIT_SYNTAX
            return self.last_status

        if not len(pipeline):
            return self.last_status

        try:
            if is_builtin(pipeline.first.name):
                status = run_builtin(self, pipeline)
            else:
                status = execute_pipeline(pipeline, cwd=self.cwd)
        except OrchestrationError as e:
            print(f"mysh: {e}", file=sys.stderr)
            status = config.EXIT_FAILURE
        except KeyboardInterrupt:
            # Ctrl+C stops the running command, not the shell
            print()
            status = config.EXIT_SIGNAL_BASE + signal.SIGINT
        finally:
            reap_zombies()

        debug(f"'{pipeline}' finished with status {status}")
        self.last_status = status
        return status

    def run(self, reader=read_line):
        """Read-evaluate loop. Returns the interpreter's exit status."""
        while self.running:
            line = reader(self.prompt)
            if line is None:
                print()
                break
            self.execute_line(line)
        return config.EXIT_SUCCESS
