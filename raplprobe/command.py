"""Parsing of pipeline control commands.

Syntax: ``[plugin:]element command [options...]``, for instance
``rapl:sources pause``, ``sources trigger every 5s`` or ``outputs run``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

_U64_MAX = 2**64 - 1
_NUMBER_CHARS = frozenset("0123456789.")
_DURATION_HINT = 'try something like "5.2s" or "100ms"'


class Element(Enum):
    """Kind of pipeline element targeted by a command."""

    SOURCE = "source"
    TRANSFORM = "transform"
    OUTPUT = "output"


class Action(Enum):
    """What a command does to the targeted elements."""

    PAUSE = "pause"
    RUN = "run"
    STOP = "stop"
    SET_TRIGGER = "set_trigger"
    ENABLE = "enable"
    DISABLE = "disable"


@dataclass(frozen=True)
class ControlCommand:
    """A parsed control command; plugin is None when it targets every plugin."""

    element: Element
    action: Action
    plugin: str | None = None
    poll_interval: timedelta | None = None
    flush_interval: timedelta | None = None


_ELEMENTS = {
    "source": Element.SOURCE,
    "sources": Element.SOURCE,
    "transform": Element.TRANSFORM,
    "transforms": Element.TRANSFORM,
    "output": Element.OUTPUT,
    "outputs": Element.OUTPUT,
}

_SIMPLE_ACTIONS = {
    Element.SOURCE: {"pause": Action.PAUSE, "run": Action.RUN, "stop": Action.STOP},
    Element.TRANSFORM: {"enable": Action.ENABLE, "disable": Action.DISABLE},
    Element.OUTPUT: {"pause": Action.PAUSE, "run": Action.RUN, "stop": Action.STOP},
}


def _parse_float(number: str) -> float:
    try:
        return float(number)
    except ValueError:
        raise ValueError(f'invalid float "{number}"') from None


def _parse_u64(number: str) -> int:
    if not number.isascii() or not number.isdigit():
        raise ValueError(f'invalid integer "{number}"')
    value = int(number)
    if value > _U64_MAX:
        raise ValueError(f'invalid integer "{number}"')
    return value


def parse_duration(d: str) -> timedelta:
    """Parse a duration like "2min", "5s", "5.17s" or "100ms"."""
    split_i = next((i for i, c in enumerate(d) if c not in _NUMBER_CHARS), None)
    if split_i is None:
        raise ValueError(f'invalid duration "{d}", {_DURATION_HINT}')
    number, unit = d[:split_i], d[split_i:]
    try:
        if unit in ("s", "sec", "seconds"):
            return timedelta(seconds=_parse_float(number))
        if unit in ("ms", "millis"):
            return timedelta(milliseconds=_parse_u64(number))
        if unit in ("mn", "min", "minutes"):
            minutes = _parse_u64(number)
            if minutes * 60 > _U64_MAX:
                raise ValueError(f"{minutes} minutes is too big")
            return timedelta(minutes=minutes)
    except OverflowError:
        raise ValueError(f'duration "{d}" is too big') from None
    raise ValueError(f'Invalid duration unit "{unit}", {_DURATION_HINT}.')


def _parse_args(element: Element, args: list[str]) -> ControlCommand:
    if len(args) == 1 and args[0] in _SIMPLE_ACTIONS[element]:
        return ControlCommand(element, _SIMPLE_ACTIONS[element][args[0]])
    if element is Element.SOURCE and len(args) == 3 and args[:2] == ["trigger", "every"]:
        interval = parse_duration(args[2])
        return ControlCommand(element, Action.SET_TRIGGER, poll_interval=interval, flush_interval=interval)
    raise ValueError(f"invalid arguments for {element.value} command: {args!r}")


def parse_command(command: str) -> ControlCommand:
    """Parse a control command such as ``rapl:sources trigger every 5s``."""
    parts = [p.strip() for p in command.strip().split(" ")]
    scope = parts[0].split(":")
    args = parts[1:]
    if len(scope) == 2:
        plugin, element_name = scope
    elif len(scope) == 1:
        plugin, element_name = None, scope[0]
    else:
        raise ValueError(
            f"invalid scope {parts[0]}, expected something like plugin_name:element or element"
        )
    element = _ELEMENTS.get(element_name)
    if element is None:
        raise ValueError(f'invalid element "{element_name}", it should be source, transform or output')
    command_obj = _parse_args(element, args)
    return ControlCommand(
        command_obj.element,
        command_obj.action,
        plugin,
        command_obj.poll_interval,
        command_obj.flush_interval,
    )