"""Arrow extraction from diagram source text.

Pure functions, no infrastructure dependencies. Consumed by the diagram
extractor, which resolves the dotted endpoint paths returned here to
qualified element IDs.

Supported syntax::

    # comment
    api -> db: "Reads rows"          # forward
    api <- worker: Polls              # reversed (worker -> api)
    api <-> cache: Sync               # bidirectional
    a -- b                            # undirected, treated as bidirectional
    a -> b -> c: Chain                # one edge per hop, shared label
    backend: {                        # nested scope: backend.api -> backend.db
      api -> db
    }
    api -> queue: "Enqueue" {
      style.animated: true            # async
    }
    (api -> queue)[0].style.stroke-dash: 5   # event, applied after the fact

Unbalanced braces and unterminated strings raise :class:`DiagramParseError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from archgraph.domain.errors import DiagramParseError
from archgraph.domain.ids import short_name
from archgraph.domain.relationships import Relationship
from archgraph.domain.types import RelationshipKind

# Longest operators first so "<->" is never read as "<-" followed by ">".
_ARROW_PATTERN = re.compile(r"(<->|<-|->|--)")
_EDGE_REFERENCE = re.compile(r"^\((?P<edge>.+)\)\[(?P<index>\d+|\*)\]\.(?P<prop>.+)$")

# Keys that configure a shape or the diagram rather than declare a child shape.
_RESERVED_KEYS = frozenset(
    {
        "class",
        "classes",
        "constraint",
        "description",
        "direction",
        "height",
        "icon",
        "label",
        "layers",
        "link",
        "near",
        "scenarios",
        "shape",
        "steps",
        "style",
        "technology",
        "tooltip",
        "vars",
        "width",
    }
)


class _Tok(StrEnum):
    TEXT = "text"
    STRING = "string"
    OPEN = "open"
    CLOSE = "close"
    END = "end"


@dataclass(frozen=True)
class DiagramArrow:
    """One directed edge found in diagram source.

    ``source`` and ``target`` are dotted diagram paths (``backend.api``),
    not yet resolved to qualified IDs.
    """

    source: str
    target: str
    label: str = ""
    kind: RelationshipKind | None = None
    bidirectional: bool = False
    line: int = 0


@dataclass
class _PendingArrow:
    source: str
    target: str
    label: str
    bidirectional: bool
    line: int
    kind: RelationshipKind | None = None

    def freeze(self) -> DiagramArrow:
        return DiagramArrow(
            source=self.source,
            target=self.target,
            label=self.label,
            kind=self.kind,
            bidirectional=self.bidirectional,
            line=self.line,
        )


@dataclass
class _Frame:
    kind: str  # "scope", "edge", "style", "other"
    scope: tuple[str, ...]
    line: int
    edges: tuple[int, ...] = ()


@dataclass(frozen=True)
class _Piece:
    text: str
    quoted: bool


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def _opens_single_quote(buf: list[str]) -> bool:
    # An apostrophe inside a bare word ("user's") is text, not a quote.
    pending = "".join(buf).rstrip()
    return not pending or pending.endswith((":", ">", "-"))


def _tokenize(text: str) -> list[tuple[_Tok, str, int]]:
    tokens: list[tuple[_Tok, str, int]] = []
    buf: list[str] = []
    line = 1
    i = 0
    n = len(text)

    def flush() -> None:
        if buf:
            chunk = "".join(buf)
            if chunk.strip():
                tokens.append((_Tok.TEXT, chunk, line))
            buf.clear()

    while i < n:
        ch = text[i]
        if ch == '"' or (ch == "'" and _opens_single_quote(buf)):
            flush()
            start_line = line
            quote = ch
            i += 1
            chars: list[str] = []
            while True:
                if i >= n or text[i] == "\n":
                    raise DiagramParseError("Unterminated string", line=start_line)
                c = text[i]
                if c == "\\" and i + 1 < n:
                    chars.append(text[i + 1])
                    i += 2
                    continue
                if c == quote:
                    i += 1
                    break
                chars.append(c)
                i += 1
            tokens.append((_Tok.STRING, "".join(chars), start_line))
            continue
        if ch == "#":
            while i < n and text[i] != "\n":
                i += 1
            continue
        if ch == "{":
            flush()
            tokens.append((_Tok.OPEN, ch, line))
        elif ch == "}":
            flush()
            tokens.append((_Tok.CLOSE, ch, line))
        elif ch in "\n;":
            flush()
            tokens.append((_Tok.END, ch, line))
            if ch == "\n":
                line += 1
        else:
            buf.append(ch)
        i += 1
    flush()
    return tokens


# ---------------------------------------------------------------------------
# Statement helpers
# ---------------------------------------------------------------------------


def _split_key_value(pieces: list[_Piece]) -> tuple[list[_Piece], list[_Piece] | None]:
    """Split a statement at its first unquoted ``:``."""
    for idx, piece in enumerate(pieces):
        if piece.quoted or ":" not in piece.text:
            continue
        before, after = piece.text.split(":", 1)
        key = [*pieces[:idx]]
        if before:
            key.append(_Piece(before, quoted=False))
        value = []
        if after:
            value.append(_Piece(after, quoted=False))
        value.extend(pieces[idx + 1 :])
        return key, value
    return pieces, None


def _value_text(pieces: list[_Piece] | None) -> str:
    if not pieces:
        return ""
    quoted = [p.text for p in pieces if p.quoted]
    if quoted:
        return " ".join(quoted).strip()
    return "".join(p.text for p in pieces).strip()


def _split_arrows(pieces: list[_Piece]) -> tuple[list[list[str]], list[str]]:
    """Split a key into endpoint segment lists and the operators between them."""
    endpoints: list[list[str]] = [[]]
    operators: list[str] = []
    for piece in pieces:
        if piece.quoted:
            endpoints[-1].append(piece.text)
            continue
        for part in _ARROW_PATTERN.split(piece.text):
            if part in ("->", "<-", "<->", "--"):
                operators.append(part)
                endpoints.append([])
            elif part.strip():
                endpoints[-1].extend(seg.strip() for seg in part.strip().split(".") if seg.strip())
    return endpoints, operators


def _is_true(value: str) -> bool:
    return value.strip().lower() == "true"


def _style_kind(prop: str, value: str) -> RelationshipKind | None:
    prop = prop.strip()
    if prop.startswith("style."):
        prop = prop[len("style.") :]
    if prop == "animated" and _is_true(value):
        return RelationshipKind.ASYNC
    if prop == "stroke-dash" and value.strip() not in ("", "0"):
        return RelationshipKind.EVENT
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_arrows(text: str) -> list[DiagramArrow]:
    """Extract every arrow from diagram *text*, in source order.

    Returns an empty list for empty or arrow-free input.

    Raises:
        DiagramParseError: unbalanced braces, an unterminated string, or an
            arrow with a missing endpoint.
    """
    if not text.strip():
        return []

    arrows: list[_PendingArrow] = []
    stack: list[_Frame] = [_Frame(kind="scope", scope=(), line=0)]
    pieces: list[_Piece] = []
    stmt_line = 1

    def add_arrows(key: list[_Piece], value: list[_Piece] | None, line: int) -> tuple[int, ...]:
        endpoints, operators = _split_arrows(key)
        if any(not ep for ep in endpoints):
            raise DiagramParseError("Arrow is missing an endpoint", line=line)
        scope = stack[-1].scope
        label = _value_text(value)
        created: list[int] = []
        for hop, op in enumerate(operators):
            left = ".".join((*scope, *endpoints[hop]))
            right = ".".join((*scope, *endpoints[hop + 1]))
            if op == "<-":
                left, right = right, left
            arrows.append(
                _PendingArrow(
                    source=left,
                    target=right,
                    label=label,
                    bidirectional=op in ("<->", "--"),
                    line=line,
                )
            )
            created.append(len(arrows) - 1)
        return tuple(created)

    def apply_edge_property(indices: tuple[int, ...], prop: str, value: str) -> None:
        prop = prop.strip()
        if prop == "label" and value:
            for idx in indices:
                arrows[idx].label = value
            return
        kind = _style_kind(prop, value)
        if kind is not None:
            for idx in indices:
                arrows[idx].kind = kind

    def apply_reference(match: re.Match[str], value: str, line: int) -> None:
        endpoints, operators = _split_arrows([_Piece(match.group("edge"), quoted=False)])
        if len(operators) != 1 or any(not ep for ep in endpoints):
            raise DiagramParseError("Malformed edge reference", line=line)
        scope = stack[-1].scope
        left = ".".join((*scope, *endpoints[0]))
        right = ".".join((*scope, *endpoints[1]))
        if operators[0] == "<-":
            left, right = right, left
        matching = [
            idx
            for idx, arrow in enumerate(arrows)
            if arrow.source == left and arrow.target == right
        ]
        index = match.group("index")
        if index != "*":
            pos = int(index)
            matching = matching[pos : pos + 1]
        apply_edge_property(tuple(matching), match.group("prop"), value)

    def process(opening: bool, line: int) -> None:
        frame = stack[-1]
        if not pieces:
            if opening:
                stack.append(_Frame(kind="other", scope=frame.scope, line=line))
            return
        key, value = _split_key_value(pieces)
        key_text = "".join(p.text for p in key).strip()
        value_text = _value_text(value)

        if frame.kind in ("edge", "style") and frame.edges:
            prop = key_text if frame.kind == "edge" else f"style.{key_text}"
            if opening:
                child = "style" if key_text == "style" else "other"
                stack.append(_Frame(kind=child, scope=frame.scope, line=line, edges=frame.edges))
            else:
                apply_edge_property(frame.edges, prop, value_text)
            return

        ref = _EDGE_REFERENCE.match(key_text) if not any(p.quoted for p in key) else None
        if ref is not None:
            apply_reference(ref, value_text, line)
            if opening:
                stack.append(_Frame(kind="other", scope=frame.scope, line=line))
            return

        if frame.kind == "scope" and _ARROW_PATTERN.search(
            " ".join(p.text for p in key if not p.quoted)
        ):
            created = add_arrows(key, value, line)
            if opening:
                stack.append(_Frame(kind="edge", scope=frame.scope, line=line, edges=created))
            return

        if not opening:
            return
        segments = [p.text for p in key if p.quoted] or [
            seg.strip() for seg in key_text.split(".") if seg.strip()
        ]
        if frame.kind == "scope" and segments and segments[0] not in _RESERVED_KEYS:
            stack.append(_Frame(kind="scope", scope=(*frame.scope, *segments), line=line))
        else:
            stack.append(_Frame(kind="other", scope=frame.scope, line=line))

    for tok, value, line in _tokenize(text):
        if tok in (_Tok.TEXT, _Tok.STRING):
            if not pieces:
                stmt_line = line
            pieces.append(_Piece(value, quoted=tok is _Tok.STRING))
        elif tok is _Tok.OPEN:
            process(True, stmt_line if pieces else line)
            pieces = []
        elif tok is _Tok.CLOSE:
            process(False, stmt_line)
            pieces = []
            if len(stack) == 1:
                raise DiagramParseError("Unexpected '}'", line=line)
            stack.pop()
        else:
            process(False, stmt_line)
            pieces = []
    process(False, stmt_line)

    if len(stack) > 1:
        raise DiagramParseError(f"Unclosed '{{' opened on line {stack[-1].line}", line=stack[-1].line)

    return [arrow.freeze() for arrow in arrows]


def format_edge(relationship: Relationship) -> str:
    """Render *relationship* as one diagram edge statement.

    Endpoints use the trailing segment of each qualified path. Async edges
    are animated, event edges dashed, bidirectional edges use ``<->``.
    Always ends with a newline.
    """
    source = short_name(relationship.source) or relationship.source
    target = short_name(relationship.target) or relationship.target
    operator = "<->" if relationship.bidirectional else "->"
    label = relationship.label.replace("\\", "\\\\").replace('"', '\\"')
    head = f'{source} {operator} {target}: "{label}"'

    style: str | None = None
    if relationship.type is RelationshipKind.ASYNC:
        style = "style.animated: true"
    elif relationship.type is RelationshipKind.EVENT:
        style = "style.stroke-dash: 5"

    if style is None:
        return head + "\n"
    return f"{head} {{\n  {style}\n}}\n"
