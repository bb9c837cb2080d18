"""Parser from a response body to content blocks.

Hidden design decisions:
- markdown-it-py (CommonMark) finds fenced regions, so fence rules such as
  longer closing fences and implicit close at end of input match what a
  markdown renderer would show
- Text between fences is sliced from the source by line offsets, so no
  character outside the fence delimiters is lost or reordered
- Inline citation and download markers are matched with regular expressions
"""

import re

from markdown_it import MarkdownIt
from markdown_it.token import Token

from .models import CitationBlock, CodeBlock, ContentBlock, FileDownloadBlock, TextBlock

# Marker numbers are capped so they always convert to an int
CITATION_PATTERN = r"\[\^(?P<citation>[1-9]\d{0,17})\]"
FILE_DOWNLOAD_PATTERN = r"\[file:(?P<name>[^|\]\n]+)\|(?P<kind>[^|\]\n]+)\|(?P<size>\d{1,18})\]"
INLINE_MARKER = re.compile(f"{CITATION_PATTERN}|{FILE_DOWNLOAD_PATTERN}")

DEFAULT_EXEC_TAG = "exec"

# CommonMark allows up to three spaces before a fence marker
MAX_FENCE_INDENT = 3

_LINE_BREAK = re.compile(r"\r\n?")


class ContentBlockParser:
    """Turns a complete response body into an ordered list of blocks.

    Parsing is pure: the same body always yields the same blocks.

    Example:
        >>> parser = ContentBlockParser()
        >>> [b.type for b in parser.parse("Hi [^1]")]
        ['text', 'citation']
    """

    def __init__(self, exec_tag: str = DEFAULT_EXEC_TAG):
        """Initialize the parser.

        Args:
            exec_tag: Info-string tag that marks a fenced block as executable
        """
        self._md = MarkdownIt("commonmark")
        self._exec_tag = exec_tag.lower()

    def parse(self, body: str) -> list[ContentBlock]:
        """Parse a response body.

        Args:
            body: The full response text

        Returns:
            Blocks in source order
        """
        source = _LINE_BREAK.sub("\n", body)
        line_starts = [0] + [m.end() for m in re.finditer("\n", source)]

        def offset(line: int) -> int:
            return line_starts[line] if line < len(line_starts) else len(source)

        blocks: list[ContentBlock] = []
        cursor = 0

        for token in self._fences(source, offset):
            start_line, end_line = token.map  # type: ignore[misc]
            preceding = source[cursor:offset(start_line)]
            # The line break ending the previous line belongs to the fence
            if preceding.endswith("\n"):
                preceding = preceding[:-1]
            self._append_inline(blocks, preceding)

            blocks.append(self._code_block(token))
            cursor = offset(end_line)

        self._append_inline(blocks, source[cursor:])
        return blocks

    def _fences(self, source: str, offset) -> list[Token]:
        """Find backtick fences that open at the start of a line."""
        fences = []
        for token in self._md.parse(source):
            if token.type != "fence" or not token.map or not token.markup.startswith("`"):
                continue
            start_line = token.map[0]
            line = source[offset(start_line):offset(start_line + 1)]
            stripped = line.lstrip(" ")
            if len(line) - len(stripped) > MAX_FENCE_INDENT or not stripped.startswith(token.markup):
                # Fences nested in list items or quotes stay part of the text
                continue
            fences.append(token)
        return fences

    def _code_block(self, token: Token) -> CodeBlock:
        parts = token.info.split()
        language = parts[0] if parts else ""
        is_executable = any(part.lower() == self._exec_tag for part in parts[1:])

        code = token.content
        if code.endswith("\n"):
            code = code[:-1]

        return CodeBlock(language=language, code=code, is_executable=is_executable)

    def _append_inline(self, blocks: list[ContentBlock], text: str) -> None:
        """Split a text span around citation and download markers."""
        position = 0
        for match in INLINE_MARKER.finditer(text):
            self._append_text(blocks, text[position:match.start()])
            if match.group("citation"):
                blocks.append(CitationBlock(index=int(match.group("citation"))))
            else:
                blocks.append(FileDownloadBlock(
                    name=match.group("name"),
                    kind=match.group("kind"),
                    size_bytes=int(match.group("size")),
                ))
            position = match.end()
        self._append_text(blocks, text[position:])

    @staticmethod
    def _append_text(blocks: list[ContentBlock], text: str) -> None:
        # Blank lines between structural blocks are layout, not content
        if not text or (text.isspace() and "\n" in text):
            return
        if blocks and isinstance(blocks[-1], TextBlock):
            blocks[-1] = TextBlock(text=blocks[-1].text + text)
        else:
            blocks.append(TextBlock(text=text))


_default_parser = ContentBlockParser()


def parse_blocks(body: str) -> list[ContentBlock]:
    """Parse a body with the default parser."""
    return _default_parser.parse(body)
