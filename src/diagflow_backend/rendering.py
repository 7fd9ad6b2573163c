"""
Diagnostic report rendering.

Rendering happens in two passes:

1. ``render`` turns a ``DiagnosticSession`` into a ``RenderedDocument``, an
   immutable tuple of typed blocks that says *what* the report contains.
2. ``write_pdf`` lays those blocks out as reportlab flowables and writes the
   paginated PDF to a binary sink.

The first pass is pure: the same session and timestamp always produce the same
blocks. Only the "Generated" line depends on the clock, and callers can pin it
with ``generated_at``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Iterator, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from .models import DiagnosticSession

CHECK_MARK = "✓"

VEHICLE_SECTION = "Vehicle Information"
PROGRESS_SECTION = "Diagnostic Progress"
STEPS_SECTION = "Diagnostic Steps"

INK = "#111827"
MUTED = "#6B7280"
SUCCESS = "#15803D"


class BlockKind(str, Enum):
    TITLE = "title"
    META = "meta"
    HEADING = "heading"
    LINE = "line"
    STEP = "step"
    DETAIL = "detail"
    FOOTER = "footer"


class Alignment(str, Enum):
    LEFT = "left"
    CENTER = "center"


@dataclass(frozen=True)
class BlockStyle:
    size: float = 11
    color: str = INK
    align: Alignment = Alignment.LEFT
    indent: float = 0
    bold: bool = False


TITLE_STYLE = BlockStyle(size=22, align=Alignment.CENTER, bold=True)
META_STYLE = BlockStyle(size=9, color=MUTED, align=Alignment.CENTER)
HEADING_STYLE = BlockStyle(size=15, bold=True)
LINE_STYLE = BlockStyle()
STEP_STYLE = BlockStyle(size=11, color=SUCCESS, bold=True)
DETAIL_STYLE = BlockStyle(size=10, color=MUTED, indent=20)
FOOTER_STYLE = BlockStyle(size=9, color=MUTED, align=Alignment.CENTER)


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    text: str
    style: BlockStyle
    label: Optional[str] = None

    @property
    def plain(self) -> str:
        return f"{self.label}: {self.text}" if self.label else self.text


@dataclass(frozen=True)
class RenderedDocument:
    blocks: Tuple[Block, ...]

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def lines(self) -> List[str]:
        return [block.plain for block in self.blocks]

    def section(self, heading: str) -> Tuple[Block, ...]:
        """
        Body blocks under a section heading, up to the next heading or footer.

        Raises:
            KeyError: If the document has no such heading
        """
        for index, block in enumerate(self.blocks):
            if block.kind is BlockKind.HEADING and block.text == heading:
                body = []
                for following in self.blocks[index + 1 :]:
                    if following.kind in (BlockKind.HEADING, BlockKind.FOOTER):
                        break
                    body.append(following)
                return tuple(body)
        raise KeyError(heading)


def completion_rate(completed: int, total: int) -> int:
    """Percentage of completed steps, rounded half up; 0 when ``total`` is 0."""
    if total <= 0:
        return 0
    return int(math.floor(completed / total * 100 + 0.5))


def format_timestamp(moment: datetime) -> str:
    # Current locale's date and time representation.
    return moment.strftime("%x %X")


def vehicle_lines(session: DiagnosticSession) -> List[Tuple[str, str]]:
    """
    Labelled vehicle lines present in the session, in report order.

    Shared by the PDF and the email body so both list the same fields.
    """
    vehicle = session.vehicle_info
    lines: List[Tuple[str, str]] = []
    if vehicle.ro_number:
        lines.append(("RO Number", vehicle.ro_number))
    if vehicle.has_description():
        lines.append(("Vehicle", vehicle.description()))
    if vehicle.vin:
        lines.append(("VIN", vehicle.vin))
    return lines


def render(
    session: DiagnosticSession,
    generated_at: Optional[datetime] = None,
    product_name: str = "DiagFlow",
    tagline: str = "DiagFlow - Professional Vehicle Diagnostics",
) -> RenderedDocument:
    generated_at = generated_at or datetime.now()
    blocks: List[Block] = [
        Block(BlockKind.TITLE, f"{product_name} Diagnostic Report", TITLE_STYLE),
        Block(BlockKind.META, format_timestamp(generated_at), META_STYLE, label="Generated"),
        Block(BlockKind.HEADING, VEHICLE_SECTION, HEADING_STYLE),
    ]
    blocks.extend(Block(BlockKind.LINE, value, LINE_STYLE, label=label) for label, value in vehicle_lines(session))

    completed, total = session.completed_steps, session.total_steps
    blocks += [
        Block(BlockKind.HEADING, PROGRESS_SECTION, HEADING_STYLE),
        Block(BlockKind.LINE, f"{completed} of {total}", LINE_STYLE, label="Steps Completed"),
        Block(BlockKind.LINE, f"{completion_rate(completed, total)}%", LINE_STYLE, label="Completion Rate"),
        Block(BlockKind.HEADING, STEPS_SECTION, HEADING_STYLE),
    ]

    for step in session.steps:
        if not step.completed:
            continue
        blocks.append(Block(BlockKind.STEP, f"{CHECK_MARK} Step {step.id}: {step.title}", STEP_STYLE))
        if step.notes:
            blocks.append(Block(BlockKind.DETAIL, step.notes, DETAIL_STYLE, label="Notes"))
        if step.photo_count:
            blocks.append(Block(BlockKind.DETAIL, f"{step.photo_count} attached", DETAIL_STYLE, label="Photos"))

    blocks.append(Block(BlockKind.FOOTER, tagline, FOOTER_STYLE))
    return RenderedDocument(tuple(blocks))


def _paragraph_style(name: str, style: BlockStyle, base: ParagraphStyle) -> ParagraphStyle:
    return ParagraphStyle(
        name=name,
        parent=base,
        fontName="Helvetica-Bold" if style.bold else "Helvetica",
        fontSize=style.size,
        leading=style.size * 1.35,
        textColor=colors.HexColor(style.color),
        alignment=TA_CENTER if style.align is Alignment.CENTER else TA_LEFT,
        leftIndent=style.indent,
        spaceAfter=style.size * 0.4,
    )


def _markup(block: Block) -> str:
    text = escape(block.text)
    if block.kind is BlockKind.STEP:
        # Helvetica has no check mark glyph; ZapfDingbats "4" is one.
        text = text.replace(CHECK_MARK, '<font name="ZapfDingbats">4</font>')
    if block.label:
        label = escape(block.label)
        return f"<b>{label}:</b> {text}" if block.kind is not BlockKind.META else f"{label}: {text}"
    return text


# Extra vertical space inserted before blocks of each kind.
_SPACE_BEFORE = {
    BlockKind.HEADING: 0.25 * inch,
    BlockKind.STEP: 0.08 * inch,
    BlockKind.FOOTER: 0.5 * inch,
}


def build_flowables(document: RenderedDocument) -> list:
    base = getSampleStyleSheet()["BodyText"]
    cache: dict = {}
    flowables: list = []
    for block in document:
        style = cache.get(block.style)
        if style is None:
            style = cache[block.style] = _paragraph_style(f"DiagFlow{len(cache)}", block.style, base)
        if block.kind in _SPACE_BEFORE:
            flowables.append(Spacer(1, _SPACE_BEFORE[block.kind]))
        flowables.append(Paragraph(_markup(block), style))
    return flowables


def write_pdf(document: RenderedDocument, sink: BinaryIO, title: str = "Diagnostic Report") -> None:
    """Lay out ``document`` on Letter pages and write the PDF bytes to ``sink``."""
    template = SimpleDocTemplate(
        sink,
        pagesize=letter,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=title,
        author="DiagFlow",
    )
    template.build(build_flowables(document))
