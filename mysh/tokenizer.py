import re

PIPE = "|"
REDIRECT_IN = "<"
REDIRECT_OUT = ">"
REDIRECT_APPEND = ">>"

OPERATORS = frozenset((PIPE, REDIRECT_IN, REDIRECT_OUT, REDIRECT_APPEND))

# Same delimiter set as the classic C shells: space, tab, CR, LF, BEL
_DELIMITERS = re.compile(r"[ \t\r\n\a]+")


def tokenize(line):
    """
    Split a command line into whitespace-delimited tokens.
    No quoting, no escaping: `a|b` stays one word.
    Returns: list of str (empty for a blank line)
    """
    return [tok for tok in _DELIMITERS.split(line) if tok]


def is_operator(token):
    """True for |, <, > and >> given as standalone tokens"""
    return token in OPERATORS
