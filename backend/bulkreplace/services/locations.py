"""Human-readable labels and deep links for matched records."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from bulkreplace.services.store import RecordStore

logger = logging.getLogger(__name__)

# Activity modules: rows carry ``name`` and ``course``, and are linked
# through course_modules.
ACTIVITY_TABLES = frozenset({
    "page", "label", "book", "forum", "quiz", "assign", "glossary", "wiki",
    "lesson", "feedback", "choice", "survey", "workshop", "scorm", "folder",
    "url", "resource", "hvp",
})


@dataclass(frozen=True, slots=True)
class Location:
    location: str
    url: str | None = None


def _ucfirst(value: str) -> str:
    return value[:1].upper() + value[1:]


def fallback_label(table: str, record_id: int) -> str:
    return f"{_ucfirst(table)} ID: {record_id}"


class LocationResolver:
    """Maps (table, record id) to a label like "Forum post in: <discussion>".

    Missing parent records degrade to shorter labels or the id-based
    fallback; a lookup failure never fails the item.
    """

    __slots__ = ("store", "site_url")

    def __init__(self, store: RecordStore, site_url: str = "") -> None:
        self.store = store
        self.site_url = site_url.rstrip("/")

    def resolve(self, table: str, record_id: int) -> Location:
        try:
            return self._resolve(table, record_id)
        except Exception:
            logger.debug("Location lookup failed for %s id=%s", table, record_id, exc_info=True)
            return Location(fallback_label(table, record_id))

    # --- lookups ---

    def _get(self, table: str, record_id: Any, *columns: str) -> dict[str, Any] | None:
        if record_id is None:
            return None
        return self.store.get_record(table, {"id": record_id}, list(columns))

    def _course_shortname(self, course_id: Any) -> str | None:
        course = self._get("course", course_id, "shortname")
        return course["shortname"] if course else None

    def _course_module_id(self, module_name: str, instance_id: Any) -> int | None:
        module = self.store.get_record("modules", {"name": module_name}, ["id"])
        if not module:
            return None
        cm = self.store.get_record(
            "course_modules",
            {"module": module["id"], "instance": instance_id},
            ["id"],
        )
        return cm["id"] if cm else None

    def _link(self, path: str) -> str:
        return f"{self.site_url}{path}"

    # --- dispatch ---

    def _resolve(self, table: str, record_id: int) -> Location:
        if table == "course":
            course = self._get("course", record_id, "fullname", "shortname")
            if not course:
                return Location(f"Course ID: {record_id}")
            return Location(
                f"Course: {course['fullname']} ({course['shortname']})",
                self._link(f"/course/view.php?id={record_id}"),
            )

        if table == "course_sections":
            section = self._get("course_sections", record_id, "course", "section")
            if not section:
                return Location(f"Section ID: {record_id}")
            shortname = self._course_shortname(section["course"])
            if shortname is None:
                return Location(f"Section ID: {record_id}")
            return Location(
                f"Course section in: {shortname}",
                self._link(f"/course/view.php?id={section['course']}#section-{section['section']}"),
            )

        if table == "course_categories":
            category = self._get("course_categories", record_id, "name")
            if not category:
                return Location(fallback_label(table, record_id))
            return Location(
                f"Course category: {category['name']}",
                self._link(f"/course/index.php?categoryid={record_id}"),
            )

        if table in ACTIVITY_TABLES:
            activity = self._get(table, record_id, "name", "course")
            if not activity:
                return Location(fallback_label(table, record_id))
            coursename = self._course_shortname(activity["course"]) or f"Course {activity['course']}"
            cmid = self._course_module_id(table, record_id)
            url = self._link(f"/mod/{table}/view.php?id={cmid}") if cmid else None
            return Location(f"{_ucfirst(table)}: {activity['name']} (in {coursename})", url)

        if table == "forum_posts":
            post = self._get("forum_posts", record_id, "discussion")
            if post:
                discussion = self._get("forum_discussions", post["discussion"], "name")
                if discussion:
                    return Location(
                        f"Forum post in: {discussion['name']}",
                        self._link(f"/mod/forum/discuss.php?d={post['discussion']}#p{record_id}"),
                    )
            return Location(f"Forum post ID: {record_id}")

        if table == "forum_discussions":
            discussion = self._get("forum_discussions", record_id, "name")
            if not discussion:
                return Location(fallback_label(table, record_id))
            return Location(
                f"Forum discussion: {discussion['name']}",
                self._link(f"/mod/forum/discuss.php?d={record_id}"),
            )

        if table == "book_chapters":
            chapter = self._get("book_chapters", record_id, "title", "bookid")
            if not chapter:
                return Location(f"Book chapter ID: {record_id}")
            cmid = self._course_module_id("book", chapter["bookid"])
            url = (
                self._link(f"/mod/book/view.php?id={cmid}&chapterid={record_id}")
                if cmid else None
            )
            book = self._get("book", chapter["bookid"], "name")
            if book:
                return Location(f"Book chapter: {chapter['title']} (in {book['name']})", url)
            return Location(f"Chapter: {chapter['title']}", url)

        if table == "glossary_entries":
            entry = self._get("glossary_entries", record_id, "concept", "glossaryid")
            if not entry:
                return Location(f"Glossary entry ID: {record_id}")
            url = self._link(f"/mod/glossary/showentry.php?eid={record_id}")
            glossary = self._get("glossary", entry["glossaryid"], "name")
            if glossary:
                return Location(f"Glossary entry: {entry['concept']} (in {glossary['name']})", url)
            return Location(f"Entry: {entry['concept']}", url)

        if table == "wiki_pages":
            page = self._get("wiki_pages", record_id, "title")
            if not page:
                return Location(f"Wiki page ID: {record_id}")
            return Location(
                f"Wiki page: {page['title']}",
                self._link(f"/mod/wiki/view.php?pageid={record_id}"),
            )

        if table == "question":
            question = self._get("question", record_id, "name")
            if not question:
                return Location(f"Question ID: {record_id}")
            return Location(f"Question: {question['name']}")

        return Location(fallback_label(table, record_id))
