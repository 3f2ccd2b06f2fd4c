"""
Soul (storage key) templates.

A template is a literal string with `{name}` placeholders. `{name}` captures a
single path segment (no "/"); `{name:path}` captures the remainder, slashes
included. Routes are matched against souls arriving on the change feed and
reversed to build the souls the indexer reads and writes.
"""
import re
from typing import Optional

_PARAM_RE = re.compile(r"{([a-zA-Z_][a-zA-Z0-9_]*)(?::(path))?}")


class Route:
    def __init__(self, template: str) -> None:
        self.template = template
        self.params: list[str] = []

        pattern = "^"
        fmt = ""
        pos = 0
        for m in _PARAM_RE.finditer(template):
            literal = template[pos:m.start()]
            pattern += re.escape(literal)
            fmt += literal.replace("{", "{{").replace("}", "}}")

            name, convertor = m.group(1), m.group(2)
            pattern += f"(?P<{name}>.+)" if convertor == "path" else f"(?P<{name}>[^/]+)"
            fmt += "{" + name + "}"
            self.params.append(name)
            pos = m.end()

        literal = template[pos:]
        pattern += re.escape(literal) + "$"
        fmt += literal.replace("{", "{{").replace("}", "}}")

        self._regex = re.compile(pattern)
        self._format = fmt

    def match(self, soul: str) -> Optional[dict[str, str]]:
        m = self._regex.match(soul or "")
        return m.groupdict() if m else None

    def reverse(self, **params: Optional[str]) -> Optional[str]:
        """Build a soul, or None when any placeholder has no value."""
        if any(not params.get(name) for name in self.params):
            return None
        return self._format.format(**{name: params[name] for name in self.params})

    def __repr__(self) -> str:
        return f"Route({self.template!r})"


THING = Route("/things/{thing_id}")
THING_DATA = Route("/things/{thing_id}/data")
THING_VOTE_COUNTS = Route("/things/{thing_id}/votecounts@~{tabulator}.")
THING_LISTINGS_META = Route("/things/{thing_id}/listings@~{tabulator}.")
LISTING = Route("/listings@~{tabulator}.{path:path}")


def listing_soul(tabulator: str, path: str) -> Optional[str]:
    """Soul of the materialized node for `<listingPath>/<sortName>`."""
    return LISTING.reverse(tabulator=tabulator, path=path)
