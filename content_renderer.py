"""
Structured text renderer.

Turns the markdown-like text produced by the tutor model into a list of
RenderBlocks, and RenderBlocks into HTML for the Gradio views. The parser is
stateless and is re-run over the whole accumulated text on every streamed
fragment, so it has to cope with text cut off anywhere: an open code fence
becomes an incomplete code block, an unmatched ** stays literal.
"""
import html
import logging
import re
from typing import Callable, List, Optional, Tuple

from catalog import DEFAULT_CODE_LANGUAGE
from models import BlockKind, CalloutKind, ChatMessage, ChatRole, RenderBlock, Span

logger = logging.getLogger(__name__)

FENCE = "```"
DIAGRAM_TAG = "diagram"

BOLD_PATTERN = re.compile(r'(\*\*.*?\*\*)')
ORDERED_ITEM_PATTERN = re.compile(r'^(\d+)\. ')
LANGUAGE_TAG_PATTERN = re.compile(r'^[\w+#.-]+$')

# Checked in order; the first label found in a blockquote wins.
CALLOUT_LABELS: List[Tuple[str, CalloutKind]] = [
    ("Core Concept", CalloutKind.CONCEPT),
    ("Real World Analogy", CalloutKind.ANALOGY),
    ("Why it Matters", CalloutKind.IMPORTANCE),
    ("Warning", CalloutKind.WARNING),
    ("Pro Tip", CalloutKind.TIP),
    # Short labels used by the chat assistant
    ("Concept", CalloutKind.CONCEPT),
    ("Tip", CalloutKind.TIP),
]


def split_segments(text: str) -> List[Tuple[bool, str, bool]]:
    """Split text into (is_fenced, content, closed) segments in order.

    A fence without a closing delimiter runs to the end of the text and is
    reported with closed=False.
    """
    segments = []
    pos = 0
    while True:
        start = text.find(FENCE, pos)
        if start == -1:
            segments.append((False, text[pos:], True))
            break
        segments.append((False, text[pos:start], True))
        end = text.find(FENCE, start + len(FENCE))
        if end == -1:
            segments.append((True, text[start + len(FENCE):], False))
            break
        segments.append((True, text[start + len(FENCE):end], True))
        pos = end + len(FENCE)
    return segments


def parse_bold(text: str) -> List[Span]:
    """Split a line into plain and bold spans on **...** runs"""
    spans = []
    for part in BOLD_PATTERN.split(text):
        if not part:
            continue
        if len(part) > 4 and part.startswith('**') and part.endswith('**'):
            spans.append(Span(text=part[2:-2], bold=True))
        else:
            spans.append(Span(text=part))
    return spans


def _fenced_block(content: str, closed: bool) -> RenderBlock:
    language = None
    code = content
    if '\n' in content:
        first_line, body = content.split('\n', 1)
        tag = first_line.strip()
        if not tag or LANGUAGE_TAG_PATTERN.match(tag):
            language = tag or None
            code = body
    elif not closed:
        # Still receiving the opening line
        tag = content.strip()
        language = tag if LANGUAGE_TAG_PATTERN.match(tag) else None
        code = ""

    code = code.rstrip('\n')
    if language == DIAGRAM_TAG:
        return RenderBlock(kind=BlockKind.DIAGRAM, text=code, complete=closed)
    return RenderBlock(
        kind=BlockKind.CODE,
        text=code,
        language=language or DEFAULT_CODE_LANGUAGE,
        complete=closed,
    )


def _is_blockquote(line: str) -> bool:
    return line.startswith('> ')


def _is_sub_header(line: str) -> bool:
    return line.startswith('### ')


def _is_section_header(line: str) -> bool:
    return line.startswith('## ')


def _is_bullet(line: str) -> bool:
    return line.startswith('- ')


def _is_numbered(line: str) -> bool:
    return ORDERED_ITEM_PATTERN.match(line) is not None


def _build_callout(line: str) -> RenderBlock:
    content = re.sub(r'^>\s*', '', line)
    for label, kind in CALLOUT_LABELS:
        marker = f"**{label}**"
        if marker in content:
            body = content.replace(marker + ':', '', 1).replace(marker, '', 1).strip()
            return RenderBlock(kind=BlockKind.CALLOUT, callout=kind,
                               text=body, spans=parse_bold(body))
    return RenderBlock(kind=BlockKind.CALLOUT, callout=CalloutKind.GENERIC,
                       text=content, spans=parse_bold(content))


def _build_sub_header(line: str) -> RenderBlock:
    return RenderBlock(kind=BlockKind.HEADER, level=3, text=line[len('### '):])


def _build_section_header(line: str) -> RenderBlock:
    return RenderBlock(kind=BlockKind.HEADER, level=2, text=line[len('## '):])


def _build_bullet(line: str) -> RenderBlock:
    body = line[len('- '):]
    return RenderBlock(kind=BlockKind.LIST_ITEM, ordered=False,
                       text=body, spans=parse_bold(body))


def _build_numbered(line: str) -> RenderBlock:
    match = ORDERED_ITEM_PATTERN.match(line)
    body = line[match.end():]
    return RenderBlock(kind=BlockKind.LIST_ITEM, ordered=True, marker=match.group(1),
                       text=body, spans=parse_bold(body))


def _build_paragraph(line: str) -> RenderBlock:
    return RenderBlock(kind=BlockKind.PARAGRAPH, text=line, spans=parse_bold(line))


# Order matters: '### ' must be tried before '## '.
LINE_RULES: List[Tuple[Callable[[str], bool], Callable[[str], RenderBlock]]] = [
    (_is_blockquote, _build_callout),
    (_is_sub_header, _build_sub_header),
    (_is_section_header, _build_section_header),
    (_is_bullet, _build_bullet),
    (_is_numbered, _build_numbered),
]


def classify_line(line: str) -> RenderBlock:
    """Classify one prose line into a block"""
    trimmed = line.strip()
    if not trimmed:
        return RenderBlock(kind=BlockKind.SPACER)
    for predicate, build in LINE_RULES:
        if predicate(trimmed):
            return build(trimmed)
    # Paragraphs keep their leading indentation
    return _build_paragraph(line.rstrip())


def render_blocks(text: Optional[str]) -> List[RenderBlock]:
    """Parse accumulated text, complete or partial, into render blocks"""
    if not text:
        return []

    blocks = []
    for is_fenced, content, closed in split_segments(text):
        if is_fenced:
            blocks.append(_fenced_block(content, closed))
        elif content:
            blocks.extend(classify_line(line) for line in content.split('\n'))
    return blocks


CALLOUT_ICONS = {
    CalloutKind.CONCEPT: "📘",
    CalloutKind.ANALOGY: "💡",
    CalloutKind.IMPORTANCE: "⚡",
    CalloutKind.WARNING: "⚠️",
    CalloutKind.TIP: "🚀",
    CalloutKind.GENERIC: "",
}


def spans_to_html(spans: List[Span]) -> str:
    parts = []
    for span in spans:
        escaped = html.escape(span.text)
        parts.append(f"<strong>{escaped}</strong>" if span.bold else escaped)
    return ''.join(parts)


def block_to_html(block: RenderBlock) -> str:
    """Render a single block as an HTML fragment; all text is escaped"""
    if block.kind == BlockKind.SPACER:
        return '<div class="jt-spacer"></div>'

    if block.kind == BlockKind.HEADER:
        return (f'<h{block.level} class="jt-header jt-h{block.level}">'
                f'{html.escape(block.text)}</h{block.level}>')

    if block.kind == BlockKind.LIST_ITEM:
        if block.ordered:
            marker = f'<span class="jt-marker">{html.escape(block.marker or "")}.</span>'
        else:
            marker = '<span class="jt-bullet"></span>'
        return f'<div class="jt-list-item">{marker}<span>{spans_to_html(block.spans)}</span></div>'

    if block.kind == BlockKind.CALLOUT:
        kind = block.callout or CalloutKind.GENERIC
        icon = CALLOUT_ICONS.get(kind, "")
        icon_html = f'<span class="jt-callout-icon">{icon}</span>' if icon else ''
        return (f'<div class="jt-callout jt-callout-{kind.value}">{icon_html}'
                f'<div class="jt-callout-body">{spans_to_html(block.spans)}</div></div>')

    if block.kind == BlockKind.CODE:
        return (f'<div class="jt-code"><div class="jt-code-header">{html.escape(block.language or "")}</div>'
                f'<pre><code>{html.escape(block.text)}</code></pre></div>')

    if block.kind == BlockKind.DIAGRAM:
        return (f'<div class="jt-diagram"><pre>{html.escape(block.text)}</pre>'
                f'<div class="jt-diagram-caption">Structure Blueprint</div></div>')

    return f'<p class="jt-paragraph">{spans_to_html(block.spans)}</p>'


def blocks_to_html(blocks: List[RenderBlock]) -> str:
    return '<div class="jt-content">' + ''.join(block_to_html(b) for b in blocks) + '</div>'


def render_html(text: Optional[str]) -> str:
    """Parse and render text to HTML in one step"""
    return blocks_to_html(render_blocks(text))


def render_chat_html(messages: List[ChatMessage]) -> str:
    """Render a chat transcript; user text is shown verbatim"""
    rows = []
    for message in messages:
        if message.role == ChatRole.USER:
            rows.append(f'<div class="jt-msg jt-msg-user">{html.escape(message.text)}</div>')
            continue
        body = render_html(message.text)
        if message.streaming:
            body += '<span class="jt-cursor"></span>'
        rows.append(f'<div class="jt-msg jt-msg-assistant">{body}</div>')
    return '<div class="jt-chat">' + ''.join(rows) + '</div>'
