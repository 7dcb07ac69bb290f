from .parsed import Parsed, Unparsed, ParseResult, parse_generation
from .content import (
    LearningObjective,
    EvidenceChunk,
    FactSheet,
    CodeSnippet,
    Section,
    DraftContent,
)
from .job_state import (
    JobStatus,
    ChapterStatus,
    Verdict,
    CoverageReport,
    ReviewVerdict,
    RevisionAttempt,
    LogEntry,
    Chapter,
    Job,
)
from .reports import (
    JobSpec,
    ChapterScore,
    CompiledChapter,
    BookStats,
    CompiledBook,
    JobResult,
)

__all__ = [
    "Parsed",
    "Unparsed",
    "ParseResult",
    "parse_generation",
    "LearningObjective",
    "EvidenceChunk",
    "FactSheet",
    "CodeSnippet",
    "Section",
    "DraftContent",
    "JobStatus",
    "ChapterStatus",
    "Verdict",
    "CoverageReport",
    "ReviewVerdict",
    "RevisionAttempt",
    "LogEntry",
    "Chapter",
    "Job",
    "JobSpec",
    "ChapterScore",
    "CompiledChapter",
    "BookStats",
    "CompiledBook",
    "JobResult",
]
