"""Marker grammars for annotations embedded in node text.

Each grammar is a small tokenizer over a `Cursor`. All grammars scan the whole
text once, front to back, and yield `Marker`s in document order:

- Cloze: `{{c1::payload}}` followed by an optional ` ^clz-<id>`. The payload
  ends at the first `}}` and may span lines.
- Task: a list item line `- [ ] @user [2024-01-31] description ^task-<id>`, or
  with a date range `[2024-01-31 to 2024-02-02]`. A task is a single line by
  definition, so its marker ends at the line end.
- Agent: a fenced block opened by ```` ```agent:<type> ^agent-<id> ```` on its
  own line and closed by a ```` ``` ```` line. The body may span lines.

An id token is `^<prefix>-<chars>` separated from the marker by spaces or tabs.
A cloze id in the minted form ends after its 8 hex digits. When a marker has
no id, `insert_at` is where ` ^<id>` should be written (see `id_insertion`).
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterator, List, Optional, Tuple

ID_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_")
INLINE_SPACE = " \t"
FENCE = "```"
HEX_CHARS = frozenset("0123456789abcdef")
MINTED_ID_LENGTH = 8


@dataclass
class Marker:
    start: int
    end: int
    payload: Dict[str, Any]
    annotation_id: Optional[str] = None
    # span of the id itself (after the caret) when present
    id_span: Optional[Tuple[int, int]] = None
    insert_at: int = 0


@dataclass
class TextEdit:
    start: int
    end: int
    replacement: str


def apply_edits(text: str, edits: List[TextEdit]) -> str:
    """Apply non-overlapping edits, back to front so offsets stay valid."""
    for edit in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
        text = text[: edit.start] + edit.replacement + text[edit.end :]
    return text


class Cursor:
    """Read position over a string."""

    def __init__(self, text: str, pos: int = 0):
        self.text = text
        self.pos = pos

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self, length: int = 1) -> str:
        return self.text[self.pos : self.pos + length]

    def startswith(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def expect(self, token: str) -> bool:
        """Consume `token` if it is next."""
        if self.startswith(token):
            self.pos += len(token)
            return True
        return False

    def read_while(self, allowed) -> str:
        start = self.pos
        while not self.at_end and self.text[self.pos] in allowed:
            self.pos += 1
        return self.text[start : self.pos]

    def read_until(self, token: str) -> Optional[str]:
        """Consume up to and including `token`; returns the text before it."""
        index = self.text.find(token, self.pos)
        if index < 0:
            return None
        chunk = self.text[self.pos : index]
        self.pos = index + len(token)
        return chunk

    def skip_inline_space(self) -> str:
        return self.read_while(INLINE_SPACE)

    def line_end(self) -> int:
        index = self.text.find("\n", self.pos)
        return len(self.text) if index < 0 else index

    def next_line(self) -> None:
        self.pos = self.line_end() + 1

    def find(self, token: str) -> int:
        return self.text.find(token, self.pos)


def read_id_token(
    cursor: Cursor, prefix: str, stop_at_minted: bool = False
) -> Optional[Tuple[str, Tuple[int, int]]]:
    """Read ` ^<prefix>-<chars>` at the cursor.

    An id runs to the last id character. With `stop_at_minted`, an id that
    starts with the minted form (`<prefix>-` plus 8 hex digits) ends there
    instead, so a word glued to an inline marker stays out of the id.

    Consumes the token and returns (id, span of id) on success; leaves the
    cursor untouched otherwise.
    """
    start = cursor.pos
    if not cursor.skip_inline_space() or not cursor.expect(f"^{prefix}-"):
        cursor.pos = start
        return None
    id_start = cursor.pos - len(prefix) - 1
    head = cursor.peek(MINTED_ID_LENGTH)
    if stop_at_minted and len(head) == MINTED_ID_LENGTH and all(ch in HEX_CHARS for ch in head):
        cursor.pos += MINTED_ID_LENGTH
    elif not cursor.read_while(ID_CHARS):
        cursor.pos = start
        return None
    return cursor.text[id_start : cursor.pos], (id_start, cursor.pos)


def id_insertion(text: str, at: int, annotation_id: str) -> TextEdit:
    """Edit that writes ` ^<id>` at `at`, with a trailing space when a word follows."""
    token = f" ^{annotation_id}"
    if text[at : at + 1] in ID_CHARS:
        token += " "
    return TextEdit(at, at, token)


def trailing_id_token(line: str, offset: int, prefix: str) -> Optional[Tuple[str, Tuple[int, int], int]]:
    """Find an id token ending `line`.

    Returns (id, absolute span of id, index in `line` where the token's leading
    whitespace begins), or None.
    """
    index = line.rfind(f"^{prefix}-")
    if index <= 0 or line[index - 1] not in INLINE_SPACE:
        return None
    ident = line[index + 1 :]
    if not all(ch in ID_CHARS for ch in ident[len(prefix) + 1 :]) or len(ident) <= len(prefix) + 1:
        return None
    lead = index
    while lead > 0 and line[lead - 1] in INLINE_SPACE:
        lead -= 1
    return ident, (offset + index + 1, offset + len(line)), lead


class MarkerGrammar:
    """Base class: subclasses define `prefix` and `scan`."""

    prefix: str = ""
    name: str = ""

    def scan(self, text: str) -> Iterator[Marker]:  # pragma: no cover
        raise NotImplementedError


class ClozeGrammar(MarkerGrammar):
    prefix = "clz"
    name = "cloze"

    def scan(self, text: str) -> Iterator[Marker]:
        cursor = Cursor(text)
        while True:
            start = cursor.find("{{c")
            if start < 0:
                return
            cursor.pos = start + 3
            cluster = cursor.read_while("0123456789")
            if not cluster or not cursor.expect("::"):
                cursor.pos = start + 1
                continue

            payload = cursor.read_until("}}")
            if payload is None:
                return
            if not payload.strip():
                continue

            insert_at = cursor.pos
            token = read_id_token(cursor, self.prefix, stop_at_minted=True)
            yield Marker(
                start=start,
                end=cursor.pos,
                payload={"content": payload, "cluster": int(cluster)},
                annotation_id=token[0] if token else None,
                id_span=token[1] if token else None,
                insert_at=insert_at,
            )


class TaskGrammar(MarkerGrammar):
    prefix = "task"
    name = "task"

    def scan(self, text: str) -> Iterator[Marker]:
        cursor = Cursor(text)
        while not cursor.at_end:
            line_start = cursor.pos
            marker = self._read_task(cursor)
            if marker is not None:
                yield marker
            cursor.pos = line_start
            cursor.next_line()

    def _read_task(self, cursor: Cursor) -> Optional[Marker]:
        line_start = cursor.pos
        line_end = cursor.line_end()
        cursor.skip_inline_space()
        if not cursor.expect("- ["):
            return None
        check = cursor.peek()
        if check not in (" ", "x", "X"):
            return None
        cursor.pos += 1
        if not cursor.expect("]") or not cursor.skip_inline_space():
            return None
        if not cursor.expect("@"):
            return None
        user = cursor.read_while(ID_CHARS | frozenset(".@"))
        if not user:
            return None
        cursor.skip_inline_space()
        dates = self._read_dates(cursor)
        if dates is None:
            return None
        start_date, end_date = dates

        rest_start = cursor.pos
        line = cursor.text[rest_start:line_end].rstrip("\r").rstrip()
        token = trailing_id_token(line, rest_start, self.prefix)
        if token is not None:
            annotation_id, id_span, lead = token
            description = line[:lead].strip()
        else:
            annotation_id, id_span = None, None
            description = line.strip()

        # new ids go after the last non-blank character of the line
        text_end = rest_start + len(line)

        return Marker(
            start=line_start,
            end=line_end,
            payload={
                "user_id": user,
                "start_date": start_date,
                "end_date": end_date,
                "description": description,
                "checked": check in ("x", "X"),
            },
            annotation_id=annotation_id,
            id_span=id_span,
            insert_at=text_end,
        )

    def _read_dates(self, cursor: Cursor) -> Optional[Tuple[date, date]]:
        if not cursor.expect("["):
            return None
        start_date = self._read_date(cursor)
        if start_date is None:
            return None
        end_date = start_date
        if cursor.expect(" to "):
            end_date = self._read_date(cursor)
            if end_date is None or end_date < start_date:
                return None
        if not cursor.expect("]"):
            return None
        return start_date, end_date

    @staticmethod
    def _read_date(cursor: Cursor) -> Optional[date]:
        chunk = cursor.peek(10)
        if len(chunk) != 10 or chunk[4] != "-" or chunk[7] != "-":
            return None
        try:
            value = date.fromisoformat(chunk)
        except ValueError:
            return None
        cursor.pos += 10
        return value


class AgentGrammar(MarkerGrammar):
    prefix = "agent"
    name = "agent"

    def scan(self, text: str) -> Iterator[Marker]:
        cursor = Cursor(text)
        while not cursor.at_end:
            start = cursor.pos
            marker = self._read_block(cursor)
            if marker is not None:
                yield marker
                cursor.pos = marker.end
                if not cursor.at_end:
                    cursor.next_line()
            else:
                cursor.pos = start
                cursor.next_line()

    def _read_block(self, cursor: Cursor) -> Optional[Marker]:
        start = cursor.pos
        if not cursor.expect(f"{FENCE}agent:"):
            return None
        agent_type = cursor.read_while(ID_CHARS)
        if not agent_type:
            return None
        insert_at = cursor.pos
        token = read_id_token(cursor, self.prefix)
        cursor.skip_inline_space()
        if cursor.peek() == "\r":
            cursor.pos += 1
        if not cursor.expect("\n"):
            return None

        body_start = cursor.pos
        while not cursor.at_end:
            line_start = cursor.pos
            line_end = cursor.line_end()
            if cursor.text[line_start:line_end].rstrip() == FENCE:
                body = cursor.text[body_start:line_start]
                return Marker(
                    start=start,
                    end=line_end,
                    payload={
                        "agent_type": agent_type,
                        "body": body.rstrip("\n"),
                        "config": parse_agent_config(body),
                    },
                    annotation_id=token[0] if token else None,
                    id_span=token[1] if token else None,
                    insert_at=insert_at,
                )
            cursor.next_line()
        # unterminated block
        return None


def parse_agent_config(body: str) -> Dict[str, str]:
    """Parse `key: value` lines, skipping blank lines and `#` comments."""
    config: Dict[str, str] = {}
    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            continue
        config[key.strip()] = value.strip()
    return config


@dataclass
class LinkReference:
    target: str
    display_text: Optional[str] = None
    embed: bool = False
    position: int = 0


def scan_links(text: str) -> List[LinkReference]:
    """Find `[[target]]`, `[[target|display]]` and `![[target]]` references."""
    references: List[LinkReference] = []
    cursor = Cursor(text)
    while True:
        start = cursor.find("[[")
        if start < 0:
            return references
        cursor.pos = start + 2
        inner = cursor.read_until("]]")
        if inner is None:
            return references
        if "\n" in inner or "[" in inner:
            cursor.pos = start + 2
            continue
        target, _, display = inner.partition("|")
        target = target.strip()
        if not target:
            continue
        embed = start > 0 and text[start - 1] == "!"
        references.append(
            LinkReference(
                target=target,
                display_text=display.strip() or None,
                embed=embed,
                position=start - 1 if embed else start,
            )
        )
