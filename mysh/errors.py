"""Exceptions raised by the parser, the built-ins and the orchestrator."""


class ShellError(Exception):
    """Base class for every error mysh reports to the user."""


class ParseError(ShellError):
    """A command line that does not form a valid pipeline.

    Args:
        message: What is wrong with the line
        position: Index of the offending token (None when at end of line)
    """

    def __init__(self, message, position=None):
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self):
        if self.position is None:
            return self.message
        return f"{self.message} (token {self.position + 1})"


class EmptyStage(ParseError):
    """A `|` or a redirection with no command name in front of it."""


class MissingRedirectTarget(ParseError):
    """`<`, `>` or `>>` not followed by a file name."""


class MisplacedInputRedirect(ParseError):
    """`<` used on a stage other than the first one."""


class MisplacedOutputRedirect(ParseError):
    """`>` or `>>` used on a stage other than the last one."""


class DuplicateRedirect(ParseError):
    """Two redirections of the same direction on one stage."""


class TrailingOperator(ParseError):
    """The line ends with `|`."""


class OrchestrationError(ShellError):
    """Pipe or process creation failed while starting a pipeline."""

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class BuiltinError(ShellError):
    """A built-in command could not complete.

    Raised inside built-ins and turned into a diagnostic by the dispatcher.
    """

    def __init__(self, command, message):
        super().__init__(f"{command}: {message}")
        self.command = command
