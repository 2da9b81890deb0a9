"""URI template matching for resource routing.

MCP servers advertise resources either as concrete URIs or as RFC 6570 URI
templates. Routing a read request only needs the reverse direction of a
template: does a concrete URI fit it. Each expression is compiled into a
regular expression fragment according to its operator.
"""

import re

_EXPRESSION = re.compile(r"\{([^{}]*)\}")
_OPERATORS = "+#./;?&"


class UriTemplateError(ValueError):
    """Raised when a URI template cannot be parsed."""


def _variables(body: str) -> list[str]:
    names = []
    for spec in body.split(","):
        name = spec.split(":", 1)[0].rstrip("*")
        if not name:
            raise UriTemplateError(f"empty variable in expression {{{body}}}")
        names.append(name)
    return names


def _expression_pattern(expression: str) -> str:
    if not expression:
        raise UriTemplateError("empty expression {}")
    operator = expression[0] if expression[0] in _OPERATORS else ""
    names = _variables(expression[len(operator):])

    if operator == "+":
        # Reserved expansion may contain slashes
        return r"[^?#]*"
    if operator == "#":
        return r"(?:\#.*)?"
    if operator == ".":
        return r"(?:\.[^/?#.]*)*"
    if operator == "/":
        return r"(?:/[^/?#]*)*"
    if operator in (";", "?", "&"):
        # Parameters may be omitted entirely when undefined
        lead = re.escape(operator)
        pairs = "|".join(re.escape(name) for name in names)
        return rf"(?:{lead}(?:{pairs})(?:=[^&#;]*)?(?:[&;](?:{pairs})(?:=[^&#;]*)?)*)?"
    # Simple string expansion stops at reserved delimiters
    return r"[^/?#,]*(?:,[^/?#,]*)*" if len(names) > 1 else r"[^/?#]*"


class UriTemplate:
    """A parsed URI template that can test concrete URIs for a match."""

    def __init__(self, template: str) -> None:
        self.template = template
        parts = []
        position = 0
        for match in _EXPRESSION.finditer(template):
            literal = template[position : match.start()]
            if "{" in literal or "}" in literal:
                raise UriTemplateError(f"unbalanced braces in {template!r}")
            parts.append(re.escape(literal))
            parts.append(_expression_pattern(match.group(1)))
            position = match.end()
        rest = template[position:]
        if "{" in rest or "}" in rest:
            raise UriTemplateError(f"unbalanced braces in {template!r}")
        parts.append(re.escape(rest))
        self._pattern = re.compile("".join(parts) + r"\Z")

    def matches(self, uri: str) -> bool:
        return self._pattern.match(uri) is not None

    def __repr__(self) -> str:
        return f"UriTemplate({self.template!r})"
