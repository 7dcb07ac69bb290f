"""Shared fixtures for end-to-end tests."""

import pytest

from tests.conftest import FakeGeneration


ONE_CHAPTER_OUTLINE = {
    "chapters": [
        {
            "id": "ch-1",
            "title": "Fundamentals of Testing",
            "domain_id": "D1",
            "learning_objectives": [
                {"id": "LO-1.1", "description": "Identify typical test objectives", "level": "K1"},
                {"id": "LO-1.2", "description": "Differentiate testing from debugging", "level": "K2"},
            ],
        }
    ]
}

THREE_CHAPTER_OUTLINE = {
    "chapters": [
        {
            "id": f"ch-{n}",
            "title": f"Domain {n}",
            "domain_id": f"D{n}",
            "learning_objectives": [f"Explain concept {n} alpha", f"Apply concept {n} beta"],
        }
        for n in (1, 2, 3)
    ]
}

JOB_REQUEST = {
    "syllabus_id": "ISTQB-CTFL",
    "syllabus_name": "ISTQB Foundation Level",
    "target_audience": "Junior testers",
    "book_subtitle": "Exam preparation",
}


def review(score, *changes):
    return {
        "score": score,
        "feedback": {"strengths": [], "required_changes": list(changes)},
        "exam_questions": [{"question": f"Question at {score}?", "correct": "A"}],
    }


@pytest.fixture
def job_request():
    return dict(JOB_REQUEST)


@pytest.fixture
def one_chapter_generation():
    def factory(**responses):
        return FakeGeneration(outline=ONE_CHAPTER_OUTLINE, **responses)
    return factory
