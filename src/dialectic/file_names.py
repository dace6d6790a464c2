"""Parse the deterministic file names produced for stored contributions.

Two shapes are recognised::

    {model}_{attempt}_{document_key}[_{fragment}][_continuation_{n}][_{suffix}].{ext}
    {model}_critiquing_{source_model}[_{fragment}]_{attempt}_{document_key}[...].{ext}

``fragment`` is an 8-character hex lineage fragment, ``suffix`` one of
``raw``, ``assembled`` or ``prompt``, and ``ext`` either ``md`` or ``json``.
Model slugs never contain underscores.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_TAIL = (
    r"(?:_continuation_(?P<turn>\d+))?"
    r"(?:_(?P<suffix>raw|assembled|prompt))?"
    r"\.(?P<ext>md|json)$"
)

_CRITIQUE_RE = re.compile(
    r"^(?P<model>[^_]+)_critiquing_(?P<source>[^_]+)"
    r"(?:_(?P<fragment>[0-9a-f]{8}))?"
    r"_(?P<attempt>\d+)_(?P<key>.+?)" + _TAIL
)

_SIMPLE_RE = re.compile(
    r"^(?P<model>[^_]+)_(?P<attempt>\d+)_(?P<key>.+?)"
    r"(?:_(?P<fragment>[0-9a-f]{8}))?" + _TAIL
)


@dataclass(frozen=True)
class ParsedFileName:
    """Components recovered from a contribution file name."""

    model_slug: str
    attempt_count: int
    document_key: str
    extension: str
    fragment: str | None = None
    turn_index: int | None = None
    suffix: str | None = None
    critiqued_model_slug: str | None = None

    @property
    def is_continuation(self) -> bool:
        return self.turn_index is not None

    @property
    def anchor_model_slug(self) -> str:
        """Model a derived artifact is anchored to.

        A critique is anchored to the model it critiques, not its author.
        """
        return self.critiqued_model_slug or self.model_slug


def parse_file_name(file_name: str | None) -> ParsedFileName | None:
    """Parse a stored file name, or return None if it follows neither shape.

    Only the final path segment is considered, so storage paths work too.
    """
    if not file_name:
        return None
    base = file_name.rsplit("/", 1)[-1]

    match = _CRITIQUE_RE.match(base)
    critiqued = match.group("source") if match else None
    if match is None:
        match = _SIMPLE_RE.match(base)
    if match is None:
        return None

    turn = match.group("turn")
    return ParsedFileName(
        model_slug=match.group("model"),
        attempt_count=int(match.group("attempt")),
        document_key=match.group("key"),
        extension=match.group("ext"),
        fragment=match.group("fragment"),
        turn_index=int(turn) if turn is not None else None,
        suffix=match.group("suffix"),
        critiqued_model_slug=critiqued,
    )
