"""Tests for location labels and deep links."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from bulkreplace.services.locations import Location, LocationResolver, fallback_label


@pytest.fixture(name="course")
def course_fixture(insert_row):
    insert_row("course", id=1, fullname="Intro to Testing", shortname="C101")


def test_fallback_label_capitalises_table():
    assert fallback_label("block_instances", 5) == "Block_instances ID: 5"


def test_course(resolver, course):
    assert resolver.resolve("course", 1) == Location(
        "Course: Intro to Testing (C101)", "http://lms.test/course/view.php?id=1"
    )


def test_missing_course(resolver):
    assert resolver.resolve("course", 99) == Location("Course ID: 99")


def test_course_section(resolver, course, insert_row):
    insert_row("course_sections", id=10, course=1, section=2, name="Week 2")
    location = resolver.resolve("course_sections", 10)
    assert location.location == "Course section in: C101"
    assert location.url == "http://lms.test/course/view.php?id=1#section-2"


def test_course_section_without_course(resolver, insert_row):
    insert_row("course_sections", id=10, course=5, section=0)
    assert resolver.resolve("course_sections", 10) == Location("Section ID: 10")


def test_activity_with_course_module_link(resolver, course_page):
    assert resolver.resolve("page", 1) == Location(
        "Page: Welcome (in C101)", "http://lms.test/mod/page/view.php?id=42"
    )


def test_activity_without_course_module_has_no_url(resolver, course, insert_row):
    insert_row("book", id=3, course=1, name="Handbook")
    assert resolver.resolve("book", 3) == Location("Book: Handbook (in C101)")


def test_activity_in_unknown_course(resolver, insert_row):
    insert_row("glossary", id=4, course=77, name="Terms")
    assert resolver.resolve("glossary", 4).location == "Glossary: Terms (in Course 77)"


def test_forum_post(resolver, insert_row):
    insert_row("forum_discussions", id=8, course=1, name="Welcome thread")
    insert_row("forum_posts", id=21, discussion=8, subject="Hi", message="...")
    assert resolver.resolve("forum_posts", 21) == Location(
        "Forum post in: Welcome thread", "http://lms.test/mod/forum/discuss.php?d=8#p21"
    )


def test_forum_post_without_discussion(resolver, insert_row):
    insert_row("forum_posts", id=21, discussion=8, subject="Hi", message="...")
    assert resolver.resolve("forum_posts", 21) == Location("Forum post ID: 21")


def test_forum_discussion(resolver, insert_row):
    insert_row("forum_discussions", id=8, course=1, name="Welcome thread")
    assert resolver.resolve("forum_discussions", 8).location == "Forum discussion: Welcome thread"


def test_book_chapter(resolver, insert_row):
    insert_row("book", id=3, course=1, name="Handbook")
    insert_row("modules", id=4, name="book")
    insert_row("course_modules", id=50, course=1, module=4, instance=3)
    insert_row("book_chapters", id=9, bookid=3, title="Setup", content="")
    assert resolver.resolve("book_chapters", 9) == Location(
        "Book chapter: Setup (in Handbook)",
        "http://lms.test/mod/book/view.php?id=50&chapterid=9",
    )


def test_book_chapter_without_book(resolver, insert_row):
    insert_row("book_chapters", id=9, bookid=3, title="Setup", content="")
    assert resolver.resolve("book_chapters", 9) == Location("Chapter: Setup")


def test_glossary_entry(resolver, insert_row):
    insert_row("glossary", id=4, course=1, name="Terms")
    insert_row("glossary_entries", id=6, glossaryid=4, concept="LMS", definition="")
    assert resolver.resolve("glossary_entries", 6) == Location(
        "Glossary entry: LMS (in Terms)", "http://lms.test/mod/glossary/showentry.php?eid=6"
    )


def test_wiki_page(resolver, insert_row):
    insert_row("wiki_pages", id=2, title="Home", cachedcontent="")
    assert resolver.resolve("wiki_pages", 2).location == "Wiki page: Home"


def test_question(resolver, insert_row):
    insert_row("question", id=12, name="Q1", questiontext="")
    assert resolver.resolve("question", 12) == Location("Question: Q1")


def test_unknown_table_uses_fallback(resolver):
    assert resolver.resolve("block_instances", 5) == Location("Block_instances ID: 5")


def test_lookup_failure_degrades_to_fallback():
    store = MagicMock()
    store.get_record.side_effect = RuntimeError("connection lost")
    assert LocationResolver(store).resolve("page", 3) == Location("Page ID: 3")
