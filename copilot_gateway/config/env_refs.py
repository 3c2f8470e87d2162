from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass

# `${NAME}` or bare `$NAME`; anything else after `$` stays literal.
_ENV_REFERENCE_RE = re.compile(r"\$(?:\{([A-Za-z0-9_]+)\}|([A-Za-z0-9_]+))")


@dataclass(frozen=True, slots=True)
class EnvReference:
    name: str
    start: int
    end: int
    braced: bool


def iter_env_references(value: str) -> Iterator[EnvReference]:
    for match in _ENV_REFERENCE_RE.finditer(value):
        braced_name, bare_name = match.group(1), match.group(2)
        yield EnvReference(
            name=braced_name or bare_name,
            start=match.start(),
            end=match.end(),
            braced=braced_name is not None,
        )


def substitute_env_references(
    value: str,
    *,
    environ: Mapping[str, str] | None = None,
    on_missing: Callable[[str], Exception],
) -> str:
    """Replace every env reference in ``value`` with its variable's value.

    Unset and empty variables are both treated as missing; ``on_missing`` builds
    the exception to raise for the first one encountered. Substituted text is
    never scanned again.
    """
    env = os.environ if environ is None else environ
    parts: list[str] = []
    cursor = 0
    for reference in iter_env_references(value):
        resolved = env.get(reference.name)
        if not resolved:
            raise on_missing(reference.name)
        parts.append(value[cursor : reference.start])
        parts.append(resolved)
        cursor = reference.end
    if cursor == 0:
        return value
    parts.append(value[cursor:])
    return "".join(parts)
