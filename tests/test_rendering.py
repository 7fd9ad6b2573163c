"""
Tests for the report renderer.

The "Generated" line uses the render-time clock and is therefore the only
non-deterministic block; tests pin it with ``generated_at`` where they compare
whole documents.
"""

from datetime import datetime
from io import BytesIO

from reportlab.platypus import Paragraph

from diagflow_backend.models import DiagnosticSession
from diagflow_backend.rendering import (
    PROGRESS_SECTION,
    STEPS_SECTION,
    VEHICLE_SECTION,
    BlockKind,
    build_flowables,
    completion_rate,
    render,
    write_pdf,
)

FIXED_TIME = datetime(2024, 3, 5, 14, 30, 0)


def _render(payload, **kwargs):
    return render(DiagnosticSession.model_validate(payload), generated_at=FIXED_TIME, **kwargs)


class TestDocumentLayout:
    """Block order and framing of the document."""

    def test_sections_in_order(self, session_payload):
        document = _render(session_payload)
        headings = [block.text for block in document if block.kind is BlockKind.HEADING]
        assert headings == [VEHICLE_SECTION, PROGRESS_SECTION, STEPS_SECTION]

    def test_title_and_footer(self, session_payload):
        document = _render(session_payload, product_name="DiagFlow", tagline="Built for techs")
        assert document.blocks[0].kind is BlockKind.TITLE
        assert document.blocks[0].text == "DiagFlow Diagnostic Report"
        assert document.blocks[1].plain.startswith("Generated: ")
        assert document.blocks[-1].kind is BlockKind.FOOTER
        assert document.blocks[-1].text == "Built for techs"

    def test_same_session_renders_same_blocks(self, session_payload):
        assert _render(session_payload) == _render(session_payload)

    def test_only_generated_line_depends_on_clock(self, session_payload):
        session = DiagnosticSession.model_validate(session_payload)
        first = render(session, generated_at=datetime(2024, 1, 1, 8, 0, 0))
        second = render(session, generated_at=datetime(2025, 6, 30, 17, 45, 0))
        differing = [a.plain for a, b in zip(first, second) if a != b]
        assert len(differing) == 1
        assert differing[0].startswith("Generated: ")


class TestVehicleSection:
    """Conditional vehicle lines."""

    def test_full_vehicle(self, session_payload):
        body = _render(session_payload).section(VEHICLE_SECTION)
        assert [block.plain for block in body] == [
            "RO Number: RO-1042",
            "Vehicle: 2019 Honda Civic",
            "VIN: 2HGFC2F59KH512345",
        ]

    def test_vin_only(self):
        body = _render({"vehicleInfo": {"vin": "1FTFW1E50JFA00001"}}).section(VEHICLE_SECTION)
        assert [block.plain for block in body] == ["VIN: 1FTFW1E50JFA00001"]

    def test_missing_parts_render_as_blank_segments(self):
        body = _render({"vehicleInfo": {"make": "Ford"}}).section(VEHICLE_SECTION)
        assert [block.plain for block in body] == ["Vehicle:  Ford "]

    def test_numeric_year_is_accepted(self):
        body = _render({"vehicleInfo": {"year": 2021, "make": "Kia", "model": "Soul"}}).section(VEHICLE_SECTION)
        assert [block.plain for block in body] == ["Vehicle: 2021 Kia Soul"]

    def test_no_vehicle_info_keeps_heading(self):
        document = _render({})
        assert document.section(VEHICLE_SECTION) == ()

    def test_unknown_vehicle_fields_ignored(self):
        body = _render({"vehicleInfo": {"color": "red", "vin": "X1"}}).section(VEHICLE_SECTION)
        assert [block.plain for block in body] == ["VIN: X1"]


class TestProgressSection:
    """Step counts and completion rate."""

    def test_counts_and_rate(self):
        body = _render({"completedSteps": 7, "totalSteps": 15}).section(PROGRESS_SECTION)
        assert [block.plain for block in body] == ["Steps Completed: 7 of 15", "Completion Rate: 47%"]

    def test_zero_total_does_not_divide(self):
        body = _render({"completedSteps": 0, "totalSteps": 0}).section(PROGRESS_SECTION)
        assert [block.plain for block in body] == ["Steps Completed: 0 of 0", "Completion Rate: 0%"]

    def test_defaults_when_absent(self):
        body = _render({}).section(PROGRESS_SECTION)
        assert [block.plain for block in body] == ["Steps Completed: 0 of 15", "Completion Rate: 0%"]

    def test_null_counts_use_defaults(self):
        body = _render({"completedSteps": None, "totalSteps": None}).section(PROGRESS_SECTION)
        assert body[0].plain == "Steps Completed: 0 of 15"

    def test_rate_rounds_half_up(self):
        assert completion_rate(1, 8) == 13
        assert completion_rate(15, 15) == 100
        assert completion_rate(3, 0) == 0


class TestStepsSection:
    """Per-step lines."""

    def test_completed_steps_with_details(self, session_payload):
        body = _render(session_payload).section(STEPS_SECTION)
        assert [block.plain for block in body] == [
            "✓ Step 1: Scan for trouble codes",
            "Notes: P0301 cylinder 1 misfire",
            "Photos: 2 attached",
            "✓ Step 3: Swap spark plugs",
        ]
        assert body[0].kind is BlockKind.STEP
        assert body[1].style.indent > 0

    def test_incomplete_steps_never_appear(self, session_payload):
        lines = _render(session_payload).lines()
        assert not any("Inspect ignition coil" in line for line in lines)
        assert not any("Step 2" in line for line in lines)
        assert not any("skipped" in line for line in lines)

    def test_preserves_submission_order(self):
        steps = [{"id": sid, "title": f"t{sid}", "completed": True} for sid in (9, 2, 5)]
        body = _render({"steps": steps}).section(STEPS_SECTION)
        assert [block.text for block in body] == ["✓ Step 9: t9", "✓ Step 2: t2", "✓ Step 5: t5"]

    def test_empty_steps(self):
        assert _render({"steps": []}).section(STEPS_SECTION) == ()

    def test_absent_steps(self):
        assert _render({"vehicleInfo": {"vin": "X"}}).section(STEPS_SECTION) == ()

    def test_non_list_steps(self):
        assert _render({"steps": "not-a-list"}).section(STEPS_SECTION) == ()

    def test_empty_notes_and_images_skipped(self):
        body = _render({"steps": [{"id": "A", "title": "Road test", "completed": True, "notes": "", "images": []}]})
        assert [block.plain for block in body.section(STEPS_SECTION)] == ["✓ Step A: Road test"]

    def test_non_text_ids_and_notes_render_as_text(self):
        steps = [
            {"id": 1.5, "title": "Measure voltage", "completed": True, "notes": 42},
            {"id": 2.0, "title": "Load test", "completed": True, "notes": 12.6},
        ]
        body = _render({"steps": steps}).section(STEPS_SECTION)
        assert [block.plain for block in body] == [
            "✓ Step 1.5: Measure voltage",
            "Notes: 42",
            "✓ Step 2: Load test",
            "Notes: 12.6",
        ]

    def test_unknown_step_fields_ignored(self):
        steps = [{"id": 1, "title": "Check fuses", "completed": True, "durationSec": 40}]
        assert len(_render({"steps": steps}).section(STEPS_SECTION)) == 1


class TestPdfOutput:
    """Second pass: blocks to PDF."""

    def test_writes_pdf_bytes(self, session_payload):
        sink = BytesIO()
        write_pdf(_render(session_payload), sink)
        assert sink.getvalue().startswith(b"%PDF")

    def test_markup_is_escaped(self):
        document = _render({"steps": [{"id": 1, "title": "Check <B+> & ground", "completed": True}]})
        flowables = build_flowables(document)
        texts = [flowable.getPlainText() for flowable in flowables if isinstance(flowable, Paragraph)]
        assert any("Check <B+> & ground" in text for text in texts)
        sink = BytesIO()
        write_pdf(document, sink)
        assert sink.getvalue().startswith(b"%PDF")
