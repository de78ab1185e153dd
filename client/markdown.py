"""Formatting pass applied to finished assistant answers."""

from __future__ import annotations

import html
import re

_HEADER = re.compile(r"^### (.*)$", re.MULTILINE)
_BOLD = re.compile(r"\*\*(.*?)\*\*")
_LIST_ITEM = re.compile(r"^\* (.*)$", re.MULTILINE)
_ITALIC = re.compile(r"\*(.*?)\*")


def render_markdown(text: str) -> str:
    if not text:
        return ""

    body = html.escape(text, quote=False)
    body = _HEADER.sub(r"<h3>\1</h3>", body)
    body = _BOLD.sub(r"<strong>\1</strong>", body)
    body = _LIST_ITEM.sub(r"<li>\1</li>", body)
    body = _ITALIC.sub(r"<em>\1</em>", body)

    out = []
    in_list = False
    for line in body.split("\n"):
        if line.strip().startswith("<li>"):
            if not in_list:
                out.append("<ul>")
                in_list = True
            out.append(line)
            continue
        if in_list:
            out.append("</ul>")
            in_list = False
        if line.strip() and "<h3" not in line:
            out.append(line + "<br>")
        else:
            out.append(line)
    if in_list:
        out.append("</ul>")
    return "".join(out)


def render_plain(text: str) -> str:
    """User text: escaped, newlines kept as line breaks."""
    return html.escape(text, quote=False).replace("\n", "<br>")
