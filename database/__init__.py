from .models import CodeExecution, Snippet, SnippetComment, Star, User
from .manager import DatabaseManager
from .repository import Repository
from .execution_log import ExecutionLog

__all__ = [
    "CodeExecution",
    "DatabaseManager",
    "ExecutionLog",
    "Repository",
    "Snippet",
    "SnippetComment",
    "Star",
    "User",
]
