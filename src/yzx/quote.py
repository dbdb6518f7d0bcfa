from __future__ import annotations

import shlex
import string
from dataclasses import dataclass
from typing import Any, Callable, Sequence


Quoter = Callable[[Any], str]

_EMPTY_ARG = "''"

_formatter = string.Formatter()


def quote(value: Any) -> str:
    """
    Turn a value into text safe to splice into a shell command.

    - None and "" become an explicit empty argument ('').
    - Lists and tuples expand to one quoted word per element.
    - bytes are decoded as UTF-8; anything else goes through str().
    """
    if value is None:
        return _EMPTY_ARG
    if isinstance(value, (list, tuple)):
        return " ".join(quote(v) for v in value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    elif not isinstance(value, str):
        value = str(value)
    if value == "":
        return _EMPTY_ARG
    return shlex.quote(value)


def build(
    fragments: Sequence[str],
    values: Sequence[Any],
    quote: Quoter = quote,
) -> str:
    if len(fragments) != len(values) + 1:
        raise ValueError(
            f"expected {len(values) + 1} fragments for {len(values)} values, got {len(fragments)}"
        )
    parts: list[str] = [fragments[0]]
    for value, fragment in zip(values, fragments[1:]):
        parts.append(quote(value))
        parts.append(fragment)
    return "".join(parts)


@dataclass(frozen=True)
class Command:
    """Literal script fragments interleaved with raw values awaiting quoting."""

    fragments: tuple[str, ...]
    values: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if len(self.fragments) != len(self.values) + 1:
            raise ValueError("Command needs exactly one more fragment than values")

    def render(self, quote: Quoter = quote) -> str:
        return build(self.fragments, self.values, quote=quote)

    @property
    def text(self) -> str:
        return self.render()

    def __str__(self) -> str:
        return self.text


def template(fmt: str, *args: Any, **kwargs: Any) -> Command:
    """
    Split a str.format style template into literal fragments and values.

    Replacement fields ({}, {0}, {name}, {name.attr}, {items[0]}) become
    values; everything else, with {{ and }} collapsed, stays literal script
    text. Conversions and format specs are applied before quoting, so
    "{n:03d}" interpolates the formatted string.
    """
    fragments: list[str] = []
    values: list[Any] = []
    pending = ""
    auto_index = 0
    manual = False

    for literal, field_name, format_spec, conversion in _formatter.parse(fmt):
        pending += literal
        if field_name is None:
            continue

        if field_name == "":
            if manual:
                raise ValueError(
                    "cannot switch from manual field specification to automatic field numbering"
                )
            field_name = str(auto_index)
            auto_index += 1
        elif field_name[0].isdigit():
            if auto_index:
                raise ValueError(
                    "cannot switch from automatic field numbering to manual field specification"
                )
            manual = True

        value, _ = _formatter.get_field(field_name, args, kwargs)
        if conversion:
            value = _formatter.convert_field(value, conversion)
        if format_spec:
            value = format(value, format_spec)

        fragments.append(pending)
        values.append(value)
        pending = ""

    fragments.append(pending)
    return Command(fragments=tuple(fragments), values=tuple(values))
