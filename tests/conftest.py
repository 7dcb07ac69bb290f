"""Shared fixtures: in-process fakes for every collaborator."""

import json
import re
import threading
import pytest

from guide_writer.clients.base import GenerationRequest, SearchHit
from guide_writer.config import Config, RetryConfig
from guide_writer.engine.context import JobContext
from guide_writer.engine.retry import RetryExecutor
from guide_writer.models.job_state import Job
from guide_writer.models.reports import JobSpec
from guide_writer.pipeline import JobOrchestrator


SAMPLE_OUTLINE = {
    "chapters": [
        {
            "id": "ch-1",
            "title": "Testing Fundamentals",
            "domain_id": "D1",
            "learning_objectives": [
                {"id": "LO-1.1", "description": "Explain test levels and test types", "level": "K2"},
                {"id": "LO-1.2", "description": "Apply equivalence partitioning", "level": "K3"},
            ],
        },
        {
            "id": "ch-2",
            "title": "Static Testing",
            "domain_id": "D2",
            "learning_objectives": [
                {"id": "LO-2.1", "description": "Describe review process roles", "level": "K2"},
            ],
        },
    ]
}

_OBJECTIVE_RE = re.compile(r"## Learning Objective\n(\S+) \((\w+)\): (.+)")


def body_for(request: GenerationRequest) -> dict:
    """Body section that covers the objective named in the prompt."""
    m = _OBJECTIVE_RE.search(request.prompt)
    lo_id, level, description = m.groups() if m else ("LO-?", "K2", "unknown")
    return {
        "lo_id": lo_id,
        "lo_description": description,
        "bloom_level": level,
        "content_sections": [
            {"heading": description, "paragraphs": [f"This section covers how to {description.lower()}."]},
        ],
        "key_terms": [],
    }


DEFAULT_RESPONSES = {
    "outline": SAMPLE_OUTLINE,
    "draft.opener": {"header": "Chapter", "chapter_intro": "An introduction to the chapter."},
    "draft.body": body_for,
    "draft.closer": {
        "synthesis": "The chapter explained the essentials.",
        "assessment_questions": [
            {"question": "Which level comes first?", "options": ["A) Unit", "B) System"], "correct": "A"},
        ],
    },
    "code.generate": {"language": "python", "code": "print('ok')", "explanation": "Prints ok."},
    "code.correct": {"language": "python", "code": "print('fixed')", "explanation": "Fixed."},
    "review": {
        "score": 95,
        "hallucinated_topics": [],
        "feedback": {"strengths": ["Clear structure"], "required_changes": []},
        "exam_questions": [{"question": "What is a test level?", "correct": "B"}],
    },
}


class FakeGeneration:
    """Generation service scripted per request purpose.

    A script is a fixed value, a list consumed one item per call (the last
    item repeats), or a callable taking the request. Exceptions are raised,
    dicts and lists are returned as JSON text.
    """

    def __init__(self, **responses):
        self.responses = dict(DEFAULT_RESPONSES)
        for purpose, script in responses.items():
            self.responses[purpose.replace("_", ".")] = script
        self.requests: list[GenerationRequest] = []
        self._lock = threading.Lock()
        self.on_call = None

    def complete(self, request: GenerationRequest) -> str:
        with self._lock:
            self.requests.append(request)
            script = self.responses.get(request.purpose)
            if isinstance(script, list):
                value = script.pop(0) if len(script) > 1 else script[0]
            else:
                value = script
        if self.on_call is not None:
            self.on_call(request)
        if callable(value) and not isinstance(value, type):
            value = value(request)
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, str):
            return value
        return json.dumps(value)

    def calls(self, purpose: str) -> list[GenerationRequest]:
        return [r for r in self.requests if r.purpose == purpose]


class FakeRetrieval:
    def __init__(self, error=None, hits_per_query=1):
        self.error = error
        self.hits_per_query = hits_per_query
        self.queries: list[str] = []

    def search(self, query, filters=None, limit=5, mode="hybrid"):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return [
            SearchHit(text=f"Evidence {i} about {query}", score=0.9 - i * 0.1, metadata={"source": f"kb-{i}.pdf"})
            for i in range(min(self.hits_per_query, limit))
        ]


class FakeStandards:
    def __init__(self, compliance=None, section_error=None, compliance_error=None):
        self.compliance = compliance or {"status": "compliant", "findings": [], "score": 100}
        self.section_error = section_error
        self.compliance_error = compliance_error
        self.validated: list[str] = []

    def get_syllabus_section(self, domain_id):
        if self.section_error is not None:
            raise self.section_error
        return {"domain_id": domain_id, "title": f"Syllabus section {domain_id}"}

    def validate_compliance(self, content):
        self.validated.append(content)
        if self.compliance_error is not None:
            raise self.compliance_error
        return dict(self.compliance)


class FakePersistence:
    def __init__(self, error=None):
        self.error = error
        self.calls: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def _record(self, method, payload):
        with self._lock:
            self.calls.append((method, payload))
        if self.error is not None:
            raise self.error
        return {"ok": True}

    def create_job(self, record):
        return self._record("create_job", record)

    def get_job(self, job_id):
        return None

    def update_job(self, job_id, fields):
        return self._record("update_job", fields)

    def create_chapter(self, record):
        return self._record("create_chapter", record)

    def create_log(self, record):
        return self._record("create_log", record)

    def create_book(self, record):
        return self._record("create_book", record)

    def payloads(self, method):
        return [p for m, p in self.calls if m == method]


@pytest.fixture
def config():
    return Config(retry=RetryConfig(max_attempts=3, backoff_ms=0), log_level="DEBUG")


@pytest.fixture
def job_spec():
    return JobSpec(
        syllabus_id="ISTQB-CTFL",
        syllabus_name="ISTQB Foundation Level",
        target_audience="Junior testers",
    )


@pytest.fixture
def generation():
    return FakeGeneration()


@pytest.fixture
def retrieval():
    return FakeRetrieval()


@pytest.fixture
def standards():
    return FakeStandards()


@pytest.fixture
def persistence():
    return FakePersistence()


@pytest.fixture
def make_context(config, job_spec, generation, retrieval, standards, persistence):
    def factory(**overrides):
        services = {
            "generation": generation,
            "retrieval": retrieval,
            "standards": standards,
            "persistence": persistence,
        }
        services.update(overrides)
        return JobContext(
            job=Job(id="job-0001", spec=job_spec),
            config=services.pop("config", config),
            retry=RetryExecutor(3, 0),
            **services,
        )
    return factory


@pytest.fixture
def make_orchestrator(config, generation, retrieval, standards, persistence):
    def factory(**overrides):
        services = {
            "generation": generation,
            "retrieval": retrieval,
            "standards": standards,
            "persistence": persistence,
        }
        services.update(overrides)
        return JobOrchestrator(
            services.pop("config", config),
            sleep=lambda seconds: None,
            **services,
        )
    return factory
