from .analysis_job import AnalysisJob
from .error_log import ErrorLog

__all__ = [
    "AnalysisJob",
    "ErrorLog",
]
