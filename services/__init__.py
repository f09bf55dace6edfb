from typing import List

__all__: List[str] = [
    "code_execution_service",
    "editor_store",
    "languages",
    "preferences_storage",
]
