"""
Conversion of Zendesk comment HTML into Slack mrkdwn.

Zendesk's editor produces a small HTML subset (inline formatting, links,
headers, lists, blockquotes, indentation divs and code blocks); each construct
maps to exactly one mrkdwn rendering.
"""
import re
import logging
from typing import Callable, Dict, List, Optional

from bs4 import BeautifulSoup, Tag, NavigableString, Comment, Doctype, ProcessingInstruction, Declaration

logger = logging.getLogger(__name__)

INDENT = "    "
INDENT_PIXELS = 20
QUOTE_PREFIX = "> "

_IGNORED_STRINGS = (Comment, Doctype, ProcessingInstruction, Declaration)


def escape_mrkdwn(text: str) -> str:
    """Escape the characters Slack treats as control characters"""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class _MrkdwnWriter:
    """Accumulates mrkdwn, prefixing each non-empty line with the current quote/indent"""

    def __init__(self):
        self.parts: List[str] = []
        self.at_line_start = True
        self.quote_depth = 0
        self.indent_level = 0
        # (ordered, items written so far) for each open list
        self.lists: List[List] = []
        self.in_pre = False

    @property
    def prefix(self) -> str:
        return QUOTE_PREFIX * self.quote_depth + INDENT * self.indent_level

    def write(self, text: str):
        for i, line in enumerate(text.split("\n")):
            if i > 0:
                self.newline()
            if line:
                if self.at_line_start:
                    self.parts.append(self.prefix)
                self.parts.append(line)
                self.at_line_start = False

    def newline(self):
        self.parts.append("\n")
        self.at_line_start = True

    def ensure_line_start(self):
        if not self.at_line_start:
            self.newline()

    def getvalue(self) -> str:
        return "".join(self.parts)


class ZendeskHtmlParser:
    """Renders Zendesk comment HTML as Slack mrkdwn"""

    def __init__(self):
        self._margin_left = re.compile(r"margin-left:\s*(\d+)px", re.IGNORECASE)
        self._handlers: Dict[str, Callable[[Tag, _MrkdwnWriter], None]] = {
            "strong": self._wrap("*"),
            "b": self._wrap("*"),
            "em": self._wrap("_"),
            "i": self._wrap("_"),
            "code": self._code,
            "a": self._anchor,
            "br": self._break,
            "p": self._paragraph,
            "div": self._div,
            "ul": self._list,
            "ol": self._list,
            "li": self._list_item,
            "blockquote": self._blockquote,
            "pre": self._preformatted,
            "img": self._skip,
            "script": self._skip,
            "style": self._skip,
        }
        for level in range(1, 7):
            self._handlers[f"h{level}"] = self._header

    def parse_html(self, html: Optional[str]) -> str:
        """
        Convert a comment's html_body into mrkdwn

        Args:
            html: Comment HTML, usually wrapped in <div class="zd-comment">

        Returns:
            mrkdwn text (empty string for empty input)
        """
        if not html:
            return ""
        soup = BeautifulSoup(html, "html.parser")
        writer = _MrkdwnWriter()
        self._render_children(soup, writer)
        return writer.getvalue()

    def _render_children(self, node: Tag, writer: _MrkdwnWriter):
        for child in node.children:
            self._render(child, writer)

    def _render(self, node, writer: _MrkdwnWriter):
        if isinstance(node, _IGNORED_STRINGS):
            return
        if isinstance(node, NavigableString):
            self._text(str(node), writer)
            return
        if isinstance(node, Tag):
            handler = self._handlers.get(node.name)
            if handler is None:
                # span, u, font and anything unknown render as their content
                self._render_children(node, writer)
            else:
                handler(node, writer)

    def _text(self, text: str, writer: _MrkdwnWriter):
        # Source formatting between block elements, not content
        if not writer.in_pre and "\n" in text and not text.strip(" \t\r\n"):
            return
        writer.write(escape_mrkdwn(text))

    def _wrap(self, marker: str) -> Callable[[Tag, _MrkdwnWriter], None]:
        def render(node: Tag, writer: _MrkdwnWriter):
            writer.write(marker)
            self._render_children(node, writer)
            writer.write(marker)
        return render

    def _code(self, node: Tag, writer: _MrkdwnWriter):
        if writer.in_pre:
            self._render_children(node, writer)
            return
        writer.write("`")
        self._render_children(node, writer)
        writer.write("`")

    def _anchor(self, node: Tag, writer: _MrkdwnWriter):
        href = node.get("href")
        if not href:
            self._render_children(node, writer)
            return
        writer.write(f"<{href}|")
        self._render_children(node, writer)
        writer.write(">")

    def _break(self, node: Tag, writer: _MrkdwnWriter):
        writer.newline()

    def _skip(self, node: Tag, writer: _MrkdwnWriter):
        pass

    def _header(self, node: Tag, writer: _MrkdwnWriter):
        writer.ensure_line_start()
        writer.write("*")
        self._render_children(node, writer)
        writer.write("*")
        writer.newline()

    def _paragraph(self, node: Tag, writer: _MrkdwnWriter):
        writer.ensure_line_start()
        self._render_children(node, writer)
        writer.ensure_line_start()

    def _div(self, node: Tag, writer: _MrkdwnWriter):
        if "zd-indent" not in (node.get("class") or []):
            self._render_children(node, writer)
            return

        match = self._margin_left.search(node.get("style") or "")
        level = int(match.group(1)) // INDENT_PIXELS if match else 1

        writer.ensure_line_start()
        previous = writer.indent_level
        writer.indent_level = level
        self._render_children(node, writer)
        writer.ensure_line_start()
        writer.indent_level = previous

    def _list(self, node: Tag, writer: _MrkdwnWriter):
        writer.ensure_line_start()
        if not writer.lists:
            # Top-level lists are set apart from the preceding text
            writer.newline()
        writer.lists.append([node.name == "ol", 0])
        self._render_children(node, writer)
        writer.lists.pop()
        writer.ensure_line_start()

    def _list_item(self, node: Tag, writer: _MrkdwnWriter):
        writer.ensure_line_start()
        if writer.lists:
            current = writer.lists[-1]
            current[1] += 1
            bullet = f"{current[1]}. " if current[0] else "* "
            writer.write(INDENT * (len(writer.lists) - 1) + bullet)
        self._render_children(node, writer)
        writer.ensure_line_start()

    def _blockquote(self, node: Tag, writer: _MrkdwnWriter):
        writer.ensure_line_start()
        writer.quote_depth += 1
        self._render_children(node, writer)
        writer.ensure_line_start()
        writer.quote_depth -= 1

    def _preformatted(self, node: Tag, writer: _MrkdwnWriter):
        writer.ensure_line_start()
        writer.write("```")
        writer.newline()
        writer.in_pre = True
        self._render_children(node, writer)
        writer.in_pre = False
        writer.newline()
        writer.write("```")
