from .base import BaseStage
from .code import CodeStage
from .compile import CompileStage, compile_book
from .draft import DraftStage, RevisionNotes, chapter_summary
from .outline import OutlineStage
from .research import ResearchStage
from .review import ReviewStage, build_verdict, require_approval

__all__ = [
    "BaseStage",
    "CodeStage",
    "CompileStage",
    "DraftStage",
    "OutlineStage",
    "ResearchStage",
    "ReviewStage",
    "RevisionNotes",
    "build_verdict",
    "chapter_summary",
    "compile_book",
    "require_approval",
]
