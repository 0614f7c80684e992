"""
Formatted-path mini-language used by ``path_scanf``.

Directives:
- ``%d`` captures an integer (optional sign, at least one ASCII digit)
- ``%s`` captures a string up to the next literal of the format, or to the
  end of the input when it is the last directive
- ``%%`` matches a literal percent sign

Every other character of the format matches itself. The whole input must be
consumed for a match to succeed.
"""

from typing import Any, List, Tuple, Union

_DIGITS = frozenset("0123456789")


class ScanError(Exception):
    """Raised when an input does not match a PathFormat."""
    pass


class _Literal:
    __slots__ = ("text",)

    def __init__(self, text: str):
        self.text = text


class _Int:
    __slots__ = ()


class _Str:
    __slots__ = ()


_Token = Union[_Literal, _Int, _Str]


class PathFormat:
    """A compiled scanf-style format.

    Args:
        fmt: Format string, e.g. ``"/users/%d/files/%s"``

    Raises:
        ValueError: If the format contains an unknown directive
    """

    def __init__(self, fmt: str):
        self.fmt = fmt
        self._tokens: Tuple[_Token, ...] = tuple(self._compile(fmt))

    @property
    def arity(self) -> int:
        return sum(1 for t in self._tokens if not isinstance(t, _Literal))

    @staticmethod
    def _compile(fmt: str) -> List[_Token]:
        tokens: List[_Token] = []
        literal: List[str] = []
        i = 0
        while i < len(fmt):
            ch = fmt[i]
            if ch != "%":
                literal.append(ch)
                i += 1
                continue
            if i + 1 >= len(fmt):
                raise ValueError(f"Dangling '%' at end of format {fmt!r}")
            directive = fmt[i + 1]
            i += 2
            if directive == "%":
                literal.append("%")
                continue
            if literal:
                tokens.append(_Literal("".join(literal)))
                literal = []
            if directive == "d":
                tokens.append(_Int())
            elif directive == "s":
                tokens.append(_Str())
            else:
                raise ValueError(f"Unsupported directive '%{directive}' in format {fmt!r}")
        if literal:
            tokens.append(_Literal("".join(literal)))
        return tokens

    def scan(self, text: str) -> Tuple[Any, ...]:
        """Match ``text`` against the format and return the captured values.

        Raises:
            ScanError: On literal mismatch, insufficient or leftover input
        """
        values: List[Any] = []
        pos = 0
        for index, token in enumerate(self._tokens):
            if isinstance(token, _Literal):
                if not text.startswith(token.text, pos):
                    raise ScanError(f"expected {token.text!r} at offset {pos}")
                pos += len(token.text)
            elif isinstance(token, _Int):
                end = pos
                if end < len(text) and text[end] in "+-":
                    end += 1
                digits_start = end
                while end < len(text) and text[end] in _DIGITS:
                    end += 1
                if end == digits_start:
                    raise ScanError(f"expected integer at offset {pos}")
                try:
                    values.append(int(text[pos:end]))
                except ValueError as e:
                    # e.g. more digits than the interpreter converts
                    raise ScanError(f"integer out of range at offset {pos}") from e
                pos = end
            else:
                stop = self._string_stop(text, pos, index)
                values.append(text[pos:stop])
                pos = stop
        if pos != len(text):
            raise ScanError(f"unexpected trailing input at offset {pos}")
        return tuple(values)

    def _string_stop(self, text: str, pos: int, index: int) -> int:
        following = self._tokens[index + 1] if index + 1 < len(self._tokens) else None
        if isinstance(following, _Literal):
            stop = text.find(following.text[0], pos)
            return len(text) if stop == -1 else stop
        # %s followed by another capture or by nothing takes the rest
        return len(text)

    def __repr__(self) -> str:
        return f"PathFormat({self.fmt!r})"
