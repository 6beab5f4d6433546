"""
Syntactic validation of the configuration edit buffer.

The control plane owns the configuration schema; this gate only checks
that the text is well-formed JSON before any save is attempted.
"""

import json
from typing import Any, NoReturn, Optional

from swapstudio.core.errors import ConfigSyntaxError


def validate(text: str) -> Any:
    """
    Parse the edit buffer.

    Returns:
        The parsed document

    Raises:
        ConfigSyntaxError: With the parser's message and the error position
    """

    def reject_constant(name: str) -> NoReturn:
        # json accepts NaN/Infinity, the control plane's parser does not
        position = _bare_token_position(text, name)
        line = text.count("\n", 0, position) + 1
        column = position - text.rfind("\n", 0, position)
        raise ConfigSyntaxError(
            f"Unexpected token {name}: line {line} column {column} (char {position})",
            line=line,
            column=column,
            position=position,
        )

    try:
        return json.loads(text, parse_constant=reject_constant)
    except json.JSONDecodeError as e:
        raise ConfigSyntaxError(str(e), line=e.lineno, column=e.colno, position=e.pos) from e


def _bare_token_position(text: str, token: str) -> int:
    """Index of the first occurrence of token outside string literals."""
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif text.startswith(token, index):
            return index
    return text.find(token)


class ValidationGate:
    """Remembers whether the current edit buffer passed validation."""

    def __init__(self) -> None:
        self._error: Optional[ConfigSyntaxError] = None

    @property
    def error(self) -> Optional[ConfigSyntaxError]:
        return self._error

    @property
    def is_open(self) -> bool:
        return self._error is None

    def check(self, text: str) -> Optional[ConfigSyntaxError]:
        """Validate text and record the outcome. Empty text has nothing to check."""
        self._error = None
        if text.strip():
            try:
                validate(text)
            except ConfigSyntaxError as e:
                self._error = e
        return self._error

    def require_valid(self, text: str) -> Any:
        """Re-validate text for a persist action, raising on failure."""
        self._error = None
        try:
            return validate(text)
        except ConfigSyntaxError as e:
            self._error = e
            raise
