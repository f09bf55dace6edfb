import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from observability import emit_event

from .models import CodeExecution, Snippet, SnippetComment, Star, User
from .schemas import CODE_EXECUTIONS, SNIPPET_COMMENTS, SNIPPETS, STARS, USERS

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_COMMENT_LENGTH = 5000
SNIPPET_EDITABLE_FIELDS = ("title", "language", "code")


def _to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def _serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """ממיר מסמך Mongo לייצוג עם id כמחרוזת."""
    if doc is None:
        return None
    out = {k: v for k, v in doc.items() if k != "_id"}
    if "_id" in doc:
        out["id"] = str(doc["_id"])
    if "snippet_id" in out and out["snippet_id"] is not None:
        out["snippet_id"] = str(out["snippet_id"])
    return out


class Repository:
    """CRUD עבור משתמשים, הרצות, סניפטים, תגובות וכוכבים."""

    def __init__(self, db):
        self.db = db
        self.users = db[USERS]
        self.executions = db[CODE_EXECUTIONS]
        self.snippets = db[SNIPPETS]
        self.comments = db[SNIPPET_COMMENTS]
        self.stars = db[STARS]

    # --- Users ---
    def upsert_user(self, user: User) -> Dict[str, Any]:
        if not user.user_id:
            return {"ok": False, "error": "user_id is required"}
        try:
            self.users.update_one(
                {"user_id": user.user_id},
                {"$set": {"email": user.email, "name": user.name}},
                upsert=True,
            )
        except Exception as e:
            emit_event("db_upsert_user_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        return {"ok": True, "user": _serialize(self.users.find_one({"user_id": user.user_id}))}

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return _serialize(self.users.find_one({"user_id": user_id}))
        except Exception as e:
            emit_event("db_get_user_error", severity="error", error=str(e))
            return None

    # --- Code executions ---
    def save_execution(self, execution: CodeExecution) -> Dict[str, Any]:
        doc = asdict(execution)
        doc["_id"] = ObjectId()
        try:
            self.executions.insert_one(doc)
        except Exception as e:
            emit_event("db_save_execution_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        return {"ok": True, "id": str(doc["_id"])}

    def list_executions(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        try:
            cursor = self.executions.find(
                {"user_id": user_id}, sort=[("created_at", DESCENDING)], limit=max(0, int(limit))
            )
            return [_serialize(d) for d in cursor]
        except Exception as e:
            emit_event("db_list_executions_error", severity="error", error=str(e))
            return []

    # --- Snippets ---
    def create_snippet(self, user_id: str, title: str, language: str, code: str) -> Dict[str, Any]:
        user = self.get_user(user_id)
        if not user:
            return {"ok": False, "error": "user not found"}
        title = (title or "").strip()
        if not 1 <= len(title) <= MAX_TITLE_LENGTH:
            return {"ok": False, "error": f"title must be 1..{MAX_TITLE_LENGTH} characters"}
        if not (language or "").strip():
            return {"ok": False, "error": "language is required"}

        snippet = Snippet(
            user_id=user_id,
            title=title,
            language=language,
            code=code,
            user_name=str(user.get("name") or ""),
        )
        doc = asdict(snippet)
        doc["_id"] = ObjectId()
        try:
            self.snippets.insert_one(doc)
        except Exception as e:
            emit_event("db_create_snippet_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        emit_event("snippet_created", language=snippet.language)
        return {"ok": True, "snippet": _serialize(doc)}

    def _find_snippet_doc(self, snippet_id: Any) -> Optional[Dict[str, Any]]:
        oid = _to_object_id(snippet_id)
        if oid is None:
            return None
        return self.snippets.find_one({"_id": oid})

    def get_snippet(self, snippet_id: Any) -> Optional[Dict[str, Any]]:
        try:
            return _serialize(self._find_snippet_doc(snippet_id))
        except Exception as e:
            emit_event("db_get_snippet_error", severity="error", error=str(e))
            return None

    def list_snippets(self, limit: int = 50, *, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        flt: Dict[str, Any] = {"user_id": user_id} if user_id else {}
        try:
            cursor = self.snippets.find(flt, sort=[("created_at", DESCENDING)], limit=max(0, int(limit)))
            return [_serialize(d) for d in cursor]
        except Exception as e:
            emit_event("db_list_snippets_error", severity="error", error=str(e))
            return []

    def update_snippet(self, snippet_id: Any, user_id: str, /, **fields: Any) -> Dict[str, Any]:
        unknown = set(fields) - set(SNIPPET_EDITABLE_FIELDS)
        if unknown:
            return {"ok": False, "error": f"fields not editable: {', '.join(sorted(unknown))}"}

        updates: Dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
        if "title" in updates:
            updates["title"] = str(updates["title"]).strip()
            if not 1 <= len(updates["title"]) <= MAX_TITLE_LENGTH:
                return {"ok": False, "error": f"title must be 1..{MAX_TITLE_LENGTH} characters"}
        if "language" in updates and not str(updates["language"]).strip():
            return {"ok": False, "error": "language is required"}

        try:
            doc = self._find_snippet_doc(snippet_id)
            if not doc:
                return {"ok": False, "error": "snippet not found"}
            if doc.get("user_id") != user_id:
                return {"ok": False, "error": "not authorized"}
            if not updates:
                return {"ok": True, "snippet": _serialize(doc)}
            updates["updated_at"] = datetime.now(timezone.utc)
            self.snippets.update_one({"_id": doc["_id"]}, {"$set": updates})
        except Exception as e:
            emit_event("db_update_snippet_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        doc.update(updates)
        return {"ok": True, "snippet": _serialize(doc)}

    def delete_snippet(self, snippet_id: Any, user_id: str) -> Dict[str, Any]:
        try:
            doc = self._find_snippet_doc(snippet_id)
            if not doc:
                return {"ok": False, "error": "snippet not found"}
            if doc.get("user_id") != user_id:
                return {"ok": False, "error": "not authorized"}
            oid = doc["_id"]
            removed_comments = self.comments.delete_many({"snippet_id": oid}).deleted_count
            removed_stars = self.stars.delete_many({"snippet_id": oid}).deleted_count
            self.snippets.delete_one({"_id": oid})
        except Exception as e:
            emit_event("db_delete_snippet_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        return {"ok": True, "deleted_comments": int(removed_comments or 0), "deleted_stars": int(removed_stars or 0)}

    # --- Comments ---
    def add_comment(self, snippet_id: Any, user_id: str, content: str) -> Dict[str, Any]:
        user = self.get_user(user_id)
        if not user:
            return {"ok": False, "error": "user not found"}
        try:
            doc = self._find_snippet_doc(snippet_id)
        except Exception as e:
            emit_event("db_add_comment_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        if not doc:
            return {"ok": False, "error": "snippet not found"}
        comment = SnippetComment(
            snippet_id=doc["_id"],
            user_id=user_id,
            user_name=str(user.get("name") or ""),
            content=content,
        )
        if not 1 <= len(comment.content) <= MAX_COMMENT_LENGTH:
            return {"ok": False, "error": f"comment must be 1..{MAX_COMMENT_LENGTH} characters"}
        comment_doc = asdict(comment)
        comment_doc["_id"] = ObjectId()
        try:
            self.comments.insert_one(comment_doc)
        except Exception as e:
            emit_event("db_add_comment_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        return {"ok": True, "comment": _serialize(comment_doc)}

    def list_comments(self, snippet_id: Any) -> List[Dict[str, Any]]:
        oid = _to_object_id(snippet_id)
        if oid is None:
            return []
        try:
            cursor = self.comments.find({"snippet_id": oid}, sort=[("created_at", DESCENDING)])
            return [_serialize(d) for d in cursor]
        except Exception as e:
            emit_event("db_list_comments_error", severity="error", error=str(e))
            return []

    def delete_comment(self, comment_id: Any, user_id: str) -> Dict[str, Any]:
        oid = _to_object_id(comment_id)
        if oid is None:
            return {"ok": False, "error": "comment not found"}
        try:
            doc = self.comments.find_one({"_id": oid})
            if not doc:
                return {"ok": False, "error": "comment not found"}
            if doc.get("user_id") != user_id:
                return {"ok": False, "error": "not authorized"}
            self.comments.delete_one({"_id": oid})
        except Exception as e:
            emit_event("db_delete_comment_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        return {"ok": True}

    # --- Stars ---
    def is_snippet_starred(self, snippet_id: Any, user_id: str) -> bool:
        oid = _to_object_id(snippet_id)
        if oid is None:
            return False
        try:
            return self.stars.find_one({"user_id": user_id, "snippet_id": oid}) is not None
        except Exception as e:
            emit_event("db_is_starred_error", severity="error", error=str(e))
            return False

    def star_snippet(self, snippet_id: Any, user_id: str) -> Dict[str, Any]:
        """הוספה/הסרה של כוכב. מחזיר את המצב החדש ב-starred."""
        try:
            doc = self._find_snippet_doc(snippet_id)
            if not doc:
                return {"ok": False, "error": "snippet not found"}
            oid = doc["_id"]
            existing = self.stars.find_one({"user_id": user_id, "snippet_id": oid})
            if existing:
                self.stars.delete_one({"_id": existing["_id"]})
                return {"ok": True, "starred": False}
            star_doc = asdict(Star(snippet_id=oid, user_id=user_id))
            star_doc["_id"] = ObjectId()
            self.stars.insert_one(star_doc)
        except DuplicateKeyError:
            # כוכב מקביל כבר נשמר עבור אותו זוג
            return {"ok": True, "starred": True}
        except Exception as e:
            emit_event("db_star_snippet_error", severity="error", error=str(e))
            return {"ok": False, "error": "database error"}
        return {"ok": True, "starred": True}

    def get_star_count(self, snippet_id: Any) -> int:
        oid = _to_object_id(snippet_id)
        if oid is None:
            return 0
        try:
            return int(self.stars.count_documents({"snippet_id": oid}))
        except Exception as e:
            emit_event("db_star_count_error", severity="error", error=str(e))
            return 0

    def list_starred_snippets(self, user_id: str) -> List[Dict[str, Any]]:
        result: List[Dict[str, Any]] = []
        try:
            stars = list(self.stars.find({"user_id": user_id}, sort=[("created_at", DESCENDING)]))
            for star in stars:
                snippet = self.snippets.find_one({"_id": star.get("snippet_id")})
                if snippet:
                    result.append(_serialize(snippet))
        except Exception as e:
            emit_event("db_list_starred_error", severity="error", error=str(e))
            return []
        return result
