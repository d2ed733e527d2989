from __future__ import annotations

import logging
import re

_LOG = logging.getLogger("bgplab.checks")


class CheckFailed(AssertionError):
    pass


def matches(text: str, pattern: str) -> bool:
    ok = re.search(pattern, text) is not None
    if not ok:
        _LOG.debug("no match for %r in output: %s", pattern, _last_nonempty_line(text))
    return ok


def assert_match(text: str, pattern: str, *, context: str = "") -> None:
    if re.search(pattern, text) is None:
        where = f"{context}: " if context else ""
        raise CheckFailed(
            f"{where}output does not match {pattern!r}; last line: {_last_nonempty_line(text)!r}"
        )


def _last_nonempty_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return ""
    tail = lines[-1]
    if len(tail) > 240:
        return f"{tail[:237]}..."
    return tail
