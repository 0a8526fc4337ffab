from dataclasses import dataclass, field
from typing import List, Optional

from mysh.errors import (
    DuplicateRedirect,
    EmptyStage,
    MisplacedInputRedirect,
    MisplacedOutputRedirect,
    MissingRedirectTarget,
    TrailingOperator,
)
from mysh.tokenizer import (
    PIPE,
    REDIRECT_APPEND,
    REDIRECT_IN,
    REDIRECT_OUT,
    is_operator,
    tokenize,
)

TRUNCATE = "truncate"
APPEND = "append"


@dataclass
class Redirect:
    """Output binding of the last stage: a path and truncate/append mode."""

    path: str
    mode: str = TRUNCATE

    @property
    def operator(self):
        return REDIRECT_APPEND if self.mode == APPEND else REDIRECT_OUT


@dataclass
class Stage:
    """One command of a pipeline."""

    argv: List[str]
    input_source: Optional[str] = None
    output_target: Optional[Redirect] = None

    def __post_init__(self):
        if not self.argv:
            raise ValueError("a stage needs at least a program name")

    @property
    def name(self):
        return self.argv[0]

    def has_redirect(self):
        return self.input_source is not None or self.output_target is not None

    def to_tokens(self):
        tokens = list(self.argv)
        if self.input_source is not None:
            tokens += [REDIRECT_IN, self.input_source]
        if self.output_target is not None:
            tokens += [self.output_target.operator, self.output_target.path]
        return tokens


@dataclass
class Pipeline:
    """Stages of one command line, stage i piped into stage i+1."""

    stages: List[Stage] = field(default_factory=list)

    def __len__(self):
        return len(self.stages)

    def __iter__(self):
        return iter(self.stages)

    def __getitem__(self, index):
        return self.stages[index]

    @property
    def first(self):
        return self.stages[0]

    @property
    def last(self):
        return self.stages[-1]

    def is_simple(self):
        """One stage, no redirection: runs on the interpreter's own streams."""
        return len(self.stages) == 1 and not self.stages[0].has_redirect()

    def __str__(self):
        return f" {PIPE} ".join(" ".join(s.to_tokens()) for s in self.stages)


def _redirect_target(tokens, idx):
    """Return the file name following the operator at tokens[idx]."""
    if idx + 1 >= len(tokens) or is_operator(tokens[idx + 1]):
        raise MissingRedirectTarget(
            f"expected a file name after '{tokens[idx]}'", idx
        )
    return tokens[idx + 1]


def parse(tokens):
    """
    Build a Pipeline from a token list in one left-to-right pass.
    An empty token list gives an empty Pipeline.
    Raises: ParseError subclasses for malformed operator usage
    """
    pipeline = Pipeline()
    if not tokens:
        return pipeline

    # Pieces of the stage being built
    argv, source, target = [], None, None
    i = 0
    while i < len(tokens):
        tok = tokens[i]

        if tok == PIPE:
            if not argv:
                raise EmptyStage("missing command before '|'", i)
            if target is not None:
                raise MisplacedOutputRedirect(
                    f"'{target.operator}' is only allowed on the last command", i
                )
            pipeline.stages.append(Stage(argv, source))
            argv, source = [], None

        elif tok == REDIRECT_IN:
            path = _redirect_target(tokens, i)
            if pipeline.stages:
                raise MisplacedInputRedirect(
                    "'<' is only allowed on the first command", i
                )
            if source is not None:
                raise DuplicateRedirect("input redirected twice", i)
            source = path
            i += 1

        elif tok in (REDIRECT_OUT, REDIRECT_APPEND):
            path = _redirect_target(tokens, i)
            if target is not None:
                raise DuplicateRedirect("output redirected twice", i)
            mode = APPEND if tok == REDIRECT_APPEND else TRUNCATE
            target = Redirect(path, mode)
            i += 1

        else:
            argv.append(tok)
        i += 1

    if not argv:
        if source is not None or target is not None:
            raise EmptyStage("missing command for redirection")
        raise TrailingOperator("missing command after '|'")
    pipeline.stages.append(Stage(argv, source, target))
    return pipeline


def parse_line(line):
    """Tokenize and parse a raw command line."""
    return parse(tokenize(line))
