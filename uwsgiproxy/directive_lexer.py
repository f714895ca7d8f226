import re
from typing import NamedTuple

import pyparsing

QuotedString = pyparsing.Regex(
    re.compile(
        r"""
            "(?:[^"\\]|\\.)*"  # double-quoted string, backslash escapes allowed
            |
            '[^']*'  # single-quoted string
        """,
        re.VERBOSE,
    )
)

expr = (
    pyparsing.ZeroOrMore(
        QuotedString | pyparsing.Word(" \t") | pyparsing.CharsNotIn("""'" \t""")
    )
    .leave_whitespace()
    .parse_with_tabs()
)


def quote(val: str) -> str:
    if val and all(char not in val for char in "'\" \t#{}"):
        return val
    if "'" not in val:
        return f"'{val}'"
    return '"' + val.replace("\\", "\\\\").replace('"', '\\"') + '"'


def unquote(x: str) -> str:
    if len(x) > 1 and x[0] == '"' and x[-1] == '"':
        return re.sub(r"\\(.)", r"\1", x[1:-1])
    elif len(x) > 1 and x[0] == "'" and x[-1] == "'":
        return x[1:-1]
    else:
        return x


class Token(NamedTuple):
    value: str
    quoted: bool
    """True if any part of the token was quoted."""


def tokenize(line: str) -> list[Token]:
    """
    Split a line into tokens. Whitespace separates tokens, quoted parts may contain
    whitespace, and an unquoted token starting with "#" starts a comment.

    Raises:
        ValueError, if the line contains an unterminated quote.
    """
    try:
        parts = expr.parse_string(line, parse_all=True)
    except pyparsing.ParseException as e:
        raise ValueError(f"unterminated quote at column {e.col}") from None

    tokens: list[Token] = []
    current: Token | None = None
    for part in parts:
        if part[0] in " \t":
            if current is not None:
                tokens.append(current)
            current = None
        elif current is None and part.startswith("#"):
            break
        else:
            quoted = part[0] in "'\""
            if current is None:
                current = Token(unquote(part), quoted)
            else:
                current = Token(current.value + unquote(part), current.quoted or quoted)
    if current is not None:
        tokens.append(current)
    return tokens


def split(line: str) -> list[str]:
    """Like `tokenize`, but only returns the token values."""
    return [token.value for token in tokenize(line)]
