"""Line-oriented editing of TOML sections that preserves untouched bytes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

HEADER_RE = re.compile(r"^\s*\[(\[)?([^\]]+)\]\]?\s*(#.*)?$")

_TRAILING_BLANK_RE = re.compile(r"(?:\r?\n\s*)+\Z")
_LEADING_BLANK_RE = re.compile(r"\A(?:[ \t]*\r?\n)+")


@dataclass(frozen=True, slots=True)
class Line:
    index: int
    start: int
    end: int
    next: int
    text: str

    @property
    def terminated(self) -> bool:
        return self.next > self.end


@dataclass(frozen=True, slots=True)
class TomlSection:
    """A header line plus every line up to the next header or end of file."""

    name: str
    is_array: bool
    header: Line
    start: int
    end: int
    body: Tuple[Line, ...]

    def block(self, text: str) -> str:
        return text[self.start : self.end]


def detect_line_ending(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def split_lines(text: str) -> List[Line]:
    lines: List[Line] = []
    pos = 0
    length = len(text)
    while pos < length:
        newline = text.find("\n", pos)
        if newline < 0:
            end = nxt = length
        else:
            end, nxt = newline, newline + 1
            if end > pos and text[end - 1] == "\r":
                end -= 1
        lines.append(Line(index=len(lines), start=pos, end=end, next=nxt, text=text[pos:end]))
        pos = nxt
    return lines


def iter_sections(text: str) -> List[TomlSection]:
    lines = split_lines(text)
    headers = [(line, HEADER_RE.match(line.text)) for line in lines]
    header_lines = [(line, match) for line, match in headers if match]
    sections: List[TomlSection] = []
    for position, (line, match) in enumerate(header_lines):
        if position + 1 < len(header_lines):
            following = header_lines[position + 1][0]
            end = following.start
            body = tuple(lines[line.index + 1 : following.index])
        else:
            end = len(text)
            body = tuple(lines[line.index + 1 :])
        sections.append(
            TomlSection(
                name=match.group(2).strip(),
                is_array=match.group(1) is not None,
                header=line,
                start=line.start,
                end=end,
                body=body,
            )
        )
    return sections


def find_section(text: str, name: str) -> Optional[TomlSection]:
    for section in iter_sections(text):
        if not section.is_array and section.name == name:
            return section
    return None


def _entry_re(key: str) -> re.Pattern[str]:
    return re.compile(rf'^(\s*){re.escape(key)}\s*=\s*"([^"]*)"(\s*#.*)?$')


def read_section_entry(section: TomlSection, key: str) -> Optional[str]:
    pattern = _entry_re(key)
    for line in section.body:
        match = pattern.match(line.text)
        if match:
            return match.group(2)
    return None


def read_entry(text: str, section_name: str, key: str) -> Optional[str]:
    section = find_section(text, section_name)
    if section is None:
        return None
    return read_section_entry(section, key)


def remove_section(text: str, name: str) -> Tuple[str, bool]:
    """Drop ``[name]`` and collapse the blank lines around it to one separator."""

    section = find_section(text, name)
    if section is None:
        return text, False

    line_ending = detect_line_ending(text)
    keep_trailing_newline = text.endswith("\n")
    before = _TRAILING_BLANK_RE.sub("", text[: section.start])
    after = _LEADING_BLANK_RE.sub("", text[section.end :])
    if before and after:
        separator = line_ending * 2
    elif before and keep_trailing_newline:
        separator = line_ending
    else:
        separator = ""
    combined = f"{before}{separator}{after}"
    if keep_trailing_newline and combined and not combined.endswith("\n"):
        combined += line_ending
    return combined, True


def upsert_section_entry(text: str, section: TomlSection, key: str, value: str) -> Tuple[str, bool]:
    """Set ``key = "value"`` inside an existing section."""

    line_ending = detect_line_ending(text)
    pattern = _entry_re(key)
    for line in section.body:
        match = pattern.match(line.text)
        if not match:
            continue
        if match.group(2) == value:
            return text, False
        indent, comment = match.group(1), match.group(3) or ""
        replacement = f'{indent}{key} = "{value}"{comment}'
        return text[: line.start] + replacement + text[line.end :], True

    indent = ""
    for line in section.body:
        stripped = line.text.strip()
        if stripped and not stripped.startswith("#"):
            indent = line.text[: len(line.text) - len(line.text.lstrip())]
            break

    anchor = section.header
    for line in section.body:
        if line.text.strip():
            anchor = line
    new_line = f'{indent}{key} = "{value}"'
    if anchor.terminated:
        return text[: anchor.next] + new_line + line_ending + text[anchor.next :], True
    return text[: anchor.end] + line_ending + new_line + text[anchor.end :], True


def upsert_entry(
    text: str,
    section_name: str,
    key: str,
    value: str,
    *,
    anchors: Sequence[str] = (),
) -> Tuple[str, bool]:
    """Set ``key = "value"`` in ``[section_name]``, creating the section when missing.

    A new section goes right before the first header named in ``anchors``, or at the
    end of the file when none of them exist.
    """

    section = find_section(text, section_name)
    if section is not None:
        return upsert_section_entry(text, section, key, value)

    line_ending = detect_line_ending(text)
    block = f"[{section_name}]{line_ending}{key} = \"{value}\"{line_ending}"

    anchor_section = None
    for candidate in iter_sections(text):
        if not candidate.is_array and candidate.name in anchors:
            anchor_section = candidate
            break

    if anchor_section is not None:
        before = text[: anchor_section.start]
        preceding = split_lines(before)
        if preceding and preceding[-1].text.strip():
            block = line_ending + block
        return before + block + line_ending + text[anchor_section.start :], True

    if not text:
        return block, True
    keep_trailing_newline = text.endswith("\n")
    base = text if keep_trailing_newline else text + line_ending
    lines = split_lines(base)
    if lines and lines[-1].text.strip():
        base += line_ending
    updated = base + block
    if not keep_trailing_newline:
        updated = updated[: -len(line_ending)]
    return updated, True


__all__ = [
    "HEADER_RE",
    "Line",
    "TomlSection",
    "detect_line_ending",
    "find_section",
    "iter_sections",
    "read_entry",
    "read_section_entry",
    "remove_section",
    "split_lines",
    "upsert_entry",
    "upsert_section_entry",
]
