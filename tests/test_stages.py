"""Stage-level tests against in-process fakes."""

import pytest

from guide_writer.errors import MalformedResponse, RejectedFailure, ValidationError
from guide_writer.models.content import FactSheet, LearningObjective
from guide_writer.models.job_state import Chapter
from guide_writer.models.parsed import Parsed, Unparsed
from guide_writer.stages.code import CodeStage, code_fields, validate_snippet
from guide_writer.stages.draft import DraftStage, RevisionNotes, chapter_summary, extract_code_requests
from guide_writer.stages.outline import OutlineStage, normalize_chapters
from guide_writer.stages.research import ResearchStage

from tests.conftest import FakeGeneration, FakeRetrieval, FakeStandards


def _chapter(n_objectives=3):
    return Chapter(
        id="ch-1",
        job_id="job-0001",
        index=0,
        title="Test Techniques",
        domain_id="D4",
        objectives=[
            LearningObjective(f"LO-4.{i}", f"Apply technique number {i}")
            for i in range(1, n_objectives + 1)
        ],
    )


class TestOutline:
    def test_outline_builds_chapters(self, make_context):
        ctx = make_context()
        chapters = OutlineStage().run(ctx)
        assert [c.id for c in chapters] == ["ch-1", "ch-2"]
        assert [c.index for c in chapters] == [0, 1]
        assert chapters[0].objectives[1].level == "K3"
        assert all(c.job_id == "job-0001" for c in chapters)

    def test_string_objectives_are_normalised(self):
        chapters = normalize_chapters(
            {"chapters": [{"title": "Basics", "learning_objectives": ["Recall terms", "", "Explain goals"]}]},
            "job-1",
        )
        assert chapters[0].id == "ch-1"
        assert chapters[0].domain_id == "D1"
        assert [(o.id, o.level) for o in chapters[0].objectives] == [("LO-1.1", "K2"), ("LO-1.3", "K2")]

    def test_duplicate_ids_are_made_unique(self):
        chapters = normalize_chapters([{"id": "x"}, {"id": "x"}], "job-1")
        assert [c.id for c in chapters] == ["x", "x-2"]

    def test_unparseable_outline_is_rejected(self, make_context):
        ctx = make_context(generation=FakeGeneration(outline="I would suggest five chapters."))
        with pytest.raises(RejectedFailure):
            OutlineStage().run(ctx)

    def test_empty_outline_is_invalid(self, make_context):
        ctx = make_context(generation=FakeGeneration(outline={"chapters": []}))
        with pytest.raises(ValidationError):
            OutlineStage().run(ctx)

    def test_outline_survives_unavailable_context(self, make_context):
        ctx = make_context(
            retrieval=FakeRetrieval(error=ConnectionError("down")),
            standards=FakeStandards(section_error=ConnectionError("down")),
        )
        assert len(OutlineStage().run(ctx)) == 2


class TestResearch:
    def test_fact_sheet_has_evidence_per_objective(self, make_context):
        ctx = make_context(retrieval=FakeRetrieval(hits_per_query=2))
        sheet = ResearchStage().run(ctx, _chapter())
        assert set(sheet.evidence) == {"LO-4.1", "LO-4.2", "LO-4.3"}
        assert len(sheet.evidence_for("LO-4.1")) >= 2
        assert sheet.sources[:2] == ["kb-0.pdf", "kb-1.pdf"]
        assert sheet.syllabus_section["domain_id"] == "D4"
        assert sheet.degraded == []

    def test_objectives_are_searched_in_order(self, make_context, retrieval):
        ResearchStage().run(make_context(), _chapter())
        objective_queries = [q for q in retrieval.queries if q.startswith("Apply")]
        assert objective_queries == [
            "Apply technique number 1",
            "Apply technique number 2",
            "Apply technique number 3",
        ]

    def test_unavailable_retrieval_degrades_to_empty_evidence(self, make_context):
        ctx = make_context(retrieval=FakeRetrieval(error=TimeoutError("slow")))
        sheet = ResearchStage().run(ctx, _chapter())
        assert all(chunks == [] for chunks in sheet.evidence.values())
        assert len(sheet.degraded) == 4


class TestDraft:
    def test_body_follows_objective_order(self, make_context, generation):
        ctx = make_context()
        chapter = _chapter()
        draft = DraftStage().run(ctx, chapter, FactSheet())

        assert draft.body_objective_ids == ["LO-4.1", "LO-4.2", "LO-4.3"]
        purposes = [r.purpose for r in generation.requests]
        assert purposes == ["draft.opener", "draft.body", "draft.body", "draft.body", "draft.closer"]
        assert ctx.accumulators.open_handles == 0

    def test_each_body_call_sees_the_draft_so_far(self, make_context, generation):
        DraftStage().run(make_context(), _chapter(2), FactSheet())
        bodies = generation.calls("draft.body")
        assert "An introduction to the chapter." in bodies[0].prompt
        assert "how to apply technique number 1" in bodies[1].prompt

    def test_accumulator_closed_when_generation_fails(self, make_context):
        generation = FakeGeneration(draft_body=[MalformedResponse("bad payload")])
        ctx = make_context(generation=generation)
        with pytest.raises(RejectedFailure):
            DraftStage().run(ctx, _chapter(), FactSheet())
        assert ctx.accumulators.open_handles == 0
        assert ctx.accumulators.opened == 1

    def test_raw_output_is_kept_as_unparsed(self, make_context):
        ctx = make_context(generation=FakeGeneration(draft_closer="Just a plain summary."))
        draft = DraftStage().run(ctx, _chapter(1), FactSheet())
        assert isinstance(draft.closer.result, Unparsed)
        assert draft.synthesis() == "Just a plain summary."
        assert draft.assessment_questions() == []

    def test_code_requests_are_collected(self, make_context):
        body = {"content_sections": [{"code_request": "<<CODE_REQUEST: unit test for a stack>>"}]}
        ctx = make_context(generation=FakeGeneration(draft_body=body))
        draft = DraftStage().run(ctx, _chapter(2), FactSheet())
        assert draft.code_requests == ("unit test for a stack", "unit test for a stack")

    def test_revision_notes_reach_the_prompts(self, make_context, generation):
        notes = RevisionNotes(attempt=1, feedback=("Add an example",), previous_draft="Old draft text")
        DraftStage().run(make_context(), _chapter(1), FactSheet(), revision=notes)
        opener = generation.calls("draft.opener")[0]
        assert "Add an example" in opener.prompt
        assert "Old draft text" in opener.prompt
        assert "Add an example" in generation.calls("draft.body")[0].prompt

    def test_history_digest_is_passed_to_opener(self, make_context, generation):
        DraftStage().run(make_context(), _chapter(1), FactSheet(), history="--- Chapter: Basics ---\nSummary")
        assert "--- Chapter: Basics ---" in generation.calls("draft.opener")[0].prompt

    def test_closer_sees_the_whole_draft(self, make_context):
        intro = "SCENARIO-START A tester inherits an untested legacy module. " + "Framing sentence. " * 400
        generation = FakeGeneration(draft_opener={"header": "Chapter", "chapter_intro": intro})
        DraftStage().run(make_context(generation=generation), _chapter(1), FactSheet())

        closer = generation.calls("draft.closer")[0].prompt
        assert "SCENARIO-START" in closer
        assert "how to apply technique number 1" in closer
        assert "- LO-4.1 (K2): Apply technique number 1" in closer

    def test_research_summary_is_passed_to_opener(self, make_context, generation):
        fact_sheet = FactSheet(
            summary="4 evidence chunks for 1 objectives of Test Techniques",
            sources=["ctfl-syllabus.pdf", "glossary.md"],
        )
        DraftStage().run(make_context(), _chapter(1), fact_sheet)
        prompt = generation.calls("draft.opener")[0].prompt
        assert "## Research\n4 evidence chunks for 1 objectives of Test Techniques" in prompt
        assert "Sources: ctfl-syllabus.pdf, glossary.md" in prompt

    def test_chapter_without_objectives_is_invalid(self, make_context):
        with pytest.raises(ValidationError):
            DraftStage().run(make_context(), _chapter(0), FactSheet())

    def test_chapter_summary(self, make_context):
        chapter = _chapter(1)
        draft = DraftStage().run(make_context(), chapter, FactSheet())
        assert chapter_summary(chapter, draft) == (
            'Chapter "Test Techniques" (Domain: D4): Apply technique number 1. '
            "The chapter explained the essentials."
        )

    def test_extract_code_requests(self):
        text = "Intro <<CODE_REQUEST: parse a CSV file>> and <<CODE_REQUEST:retry loop>>"
        assert extract_code_requests(text) == ["parse a CSV file", "retry loop"]


class TestCode:
    def test_validate_snippet(self):
        assert validate_snippet("def f(x):\n    return [x]") == []
        assert validate_snippet("") == ["Code is empty"]
        assert "Code contains placeholders" in validate_snippet("# TODO: implement")
        assert validate_snippet("print((1)") == ["Unclosed '('"]
        assert validate_snippet("x = ]") == ["Unbalanced ']'"]

    def test_code_fields_fall_back_to_fenced_block(self):
        raw = Unparsed("Here:\n```java\nint x = 1;\n```")
        assert code_fields(raw) == ("java", "int x = 1;", "")
        assert code_fields(Unparsed("x = 1")) == ("text", "x = 1", "")
        assert code_fields(Parsed({"language": "go", "code": "f()"})) == ("go", "f()", "")

    def _draft_with_requests(self, make_context, generation_kwargs):
        body = {"content_sections": [{"code_request": "<<CODE_REQUEST: stack test>>"}]}
        generation = FakeGeneration(draft_body=body, **generation_kwargs)
        ctx = make_context(generation=generation)
        draft = DraftStage().run(ctx, _chapter(1), FactSheet())
        return ctx, generation, draft

    def test_valid_snippet_needs_no_correction(self, make_context):
        ctx, generation, draft = self._draft_with_requests(make_context, {})
        result = CodeStage().run(ctx, _chapter(1), draft)
        snippet = result.code_snippets[0]
        assert snippet.id == "req_1"
        assert snippet.validated and snippet.corrections == 0
        assert generation.calls("code.correct") == []

    def test_invalid_snippet_is_corrected(self, make_context):
        ctx, generation, draft = self._draft_with_requests(
            make_context, {"code_generate": {"language": "python", "code": "print((1)"}}
        )
        snippet = CodeStage().run(ctx, _chapter(1), draft).code_snippets[0]
        assert snippet.validated
        assert snippet.corrections == 1
        assert snippet.code == "print('fixed')"

    def test_snippet_kept_unvalidated_after_max_corrections(self, make_context):
        broken = {"language": "python", "code": "# TODO"}
        ctx, generation, draft = self._draft_with_requests(
            make_context, {"code_generate": broken, "code_correct": broken}
        )
        snippet = CodeStage().run(ctx, _chapter(1), draft).code_snippets[0]
        assert not snippet.validated
        assert snippet.corrections == ctx.config.pipeline.code_max_corrections
        assert snippet.errors == ("Code contains placeholders",)

    def test_draft_without_requests_is_unchanged(self, make_context):
        ctx = make_context()
        draft = DraftStage().run(ctx, _chapter(1), FactSheet())
        assert CodeStage().run(ctx, _chapter(1), draft) is draft
