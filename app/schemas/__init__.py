from .analyze import (
    AnalysisJobView,
    AnalyzeResponse,
    PublishMetadata,
    PublishResponse,
    RubricReport,
    RuleFinding,
)

__all__ = [
    "AnalysisJobView",
    "AnalyzeResponse",
    "PublishMetadata",
    "PublishResponse",
    "RubricReport",
    "RuleFinding",
]
