"""
Static uwsgi parameters from YAML or JSON documents:

    uwsgi_params:
      UWSGI_SCRIPT: app.wsgi:application
      SCRIPT_NAME: /app

JSON is a subset of YAML, so `{"uwsgi_params": {"SCRIPT_NAME": "/app"}}` works as well.
"""

from pathlib import Path
from typing import Any

import ruamel.yaml

from uwsgiproxy import exceptions

KNOWN_KEYS = ("uwsgi_params",)


def parse(text: str) -> dict[str, Any]:
    if not text:
        return {}
    try:
        yaml = ruamel.yaml.YAML(typ="safe", pure=True)
        data = yaml.load(text)
    except ruamel.yaml.error.YAMLError as v:
        if hasattr(v, "problem_mark"):
            snip = v.problem_mark.get_snippet()
            raise exceptions.OptionsError(
                "Config error at line %s:\n%s\n%s"
                % (v.problem_mark.line + 1, snip, getattr(v, "problem", ""))
            )
        else:
            raise exceptions.OptionsError("Could not parse options.")
    if data is None:
        return {}
    elif not isinstance(data, dict):
        raise exceptions.OptionsError("Config error - no keys found.")
    return data


def bind(data: dict[str, Any]) -> dict[str, str]:
    """
    Bind a parsed document to a parameter mapping.

    May raise OptionsError if the document contains unknown keys or values of the wrong type.
    """
    unknown = [str(k) for k in data if k not in KNOWN_KEYS]
    if unknown:
        raise exceptions.OptionsError("Unknown options: %s" % ", ".join(unknown))

    params = data.get("uwsgi_params")
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise exceptions.OptionsError(
            f"Expected a mapping for uwsgi_params, but got {type(params).__name__}."
        )
    for k, v in params.items():
        if not isinstance(k, str) or not isinstance(v, str):
            raise exceptions.OptionsError(
                f"uwsgi_params must map strings to strings, got {k!r}: {v!r}."
            )
    return dict(params)


def load(text: str) -> dict[str, str]:
    """
    Load parameters from a YAML or JSON document.
    May raise OptionsError if the document is invalid.
    """
    return bind(parse(text))


def load_paths(*paths: Path | str) -> dict[str, str]:
    """
    Load paths in order. Each path takes precedence over the previous
    path. Paths that don't exist are ignored, errors raise an
    OptionsError.
    """
    params: dict[str, str] = {}
    for p in paths:
        p = Path(p).expanduser()
        if p.exists() and p.is_file():
            with p.open(encoding="utf8") as f:
                try:
                    txt = f.read()
                except UnicodeDecodeError as e:
                    raise exceptions.OptionsError(f"Error reading {p}: {e}")
            try:
                params.update(load(txt))
            except exceptions.OptionsError as e:
                raise exceptions.OptionsError(f"Error reading {p}: {e}")
    return params
