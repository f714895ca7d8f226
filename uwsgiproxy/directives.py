"""
Static uwsgi parameters in directive syntax:

    uwsgi {
        # UWSGI_SCRIPT is required by some uWSGI setups
        uwsgi_param UWSGI_SCRIPT app.wsgi:application
        uwsgi_param SCRIPT_NAME "/my app"
    }

The enclosing block is optional. Each directive sets one parameter,
later directives replace earlier ones with the same key.
"""

from uwsgiproxy import directive_lexer
from uwsgiproxy.exceptions import DirectiveError

PARAM_DIRECTIVE = "uwsgi_param"

_block_openers = (["uwsgi"], ["transport", "uwsgi"])


def parse(text: str) -> dict[str, str]:
    """
    Parse directives into a parameter mapping.

    *Raises:*
     - DirectiveError, for unknown directives, wrong argument counts,
       unterminated quotes or unbalanced blocks.
    """
    params: dict[str, str] = {}
    in_block = False
    for lineno, line in enumerate(text.splitlines(), start=1):
        try:
            raw = directive_lexer.tokenize(line)
        except ValueError as e:
            raise DirectiveError(f"line {lineno}: {e}")
        if not raw:
            continue
        tokens = [t.value for t in raw]

        # only bare braces delimit blocks, "{" is a valid quoted value
        if raw[-1] == ("{", False):
            if in_block or tokens[:-1] not in _block_openers:
                raise DirectiveError(f"line {lineno}: unexpected block")
            in_block = True
        elif raw == [("}", False)]:
            if not in_block:
                raise DirectiveError(f"line {lineno}: unexpected '}}'")
            in_block = False
        else:
            name, *args = tokens
            if name != PARAM_DIRECTIVE:
                raise DirectiveError(f"line {lineno}: unknown subdirective {name}")
            if len(args) != 2:
                raise DirectiveError(
                    f"line {lineno}: wrong argument count or unexpected line ending after '{name}'"
                )
            key, value = args
            params[key] = value

    if in_block:
        raise DirectiveError("unexpected end of input, expected '}'")
    return params


def dump(params: dict[str, str]) -> str:
    """
    The inverse of `parse`, without the enclosing block.
    """
    return "".join(
        f"{PARAM_DIRECTIVE} {directive_lexer.quote(key)} {directive_lexer.quote(value)}\n"
        for key, value in params.items()
    )
