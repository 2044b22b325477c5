import pytest

from shelfnote.services.schema_detector import (
    SchemaDetectionError, columns_from_notion, detect_book_properties, detect_todo_properties, find_column,
)

BOOK_COLUMNS = [("이름", "title"), ("저자", "rich_text"), ("표지", "files"), ("상태", "select"), ("메모", "rich_text")]


def test_detects_korean_reading_list():
    props = detect_book_properties(BOOK_COLUMNS)
    assert props.title_property == "이름"
    assert props.author_property == "저자"
    assert props.cover_property == "표지"
    assert props.cover_property_type == "files"
    assert props.status_property == "상태"


def test_detection_is_deterministic():
    assert detect_book_properties(BOOK_COLUMNS) == detect_book_properties(list(BOOK_COLUMNS))


def test_keywords_match_case_insensitive_substrings():
    props = detect_book_properties([("Name", "title"), ("Author Name", "rich_text"), ("Cover URL", "url")])
    assert props.author_property == "Author Name"
    assert props.cover_property == "Cover URL"
    assert props.cover_property_type == "url"


def test_first_match_wins_even_when_a_later_column_fits_better():
    columns = [("Name", "title"), ("co-author", "rich_text"), ("author", "rich_text")]
    assert detect_book_properties(columns).author_property == "co-author"


def test_keyword_on_wrong_type_is_ignored():
    props = detect_book_properties([("Name", "title"), ("Status", "multi_select"), ("Cover", "rich_text")])
    assert props.status_property == ""
    assert props.cover_property == ""
    assert props.cover_property_type == ""


def test_book_database_without_title_fails():
    with pytest.raises(SchemaDetectionError) as exc:
        detect_book_properties([("저자", "rich_text")])
    assert exc.value.role == "title"
    assert "제목 속성" in str(exc.value)


def test_todo_database_needs_date_and_title():
    props = detect_todo_properties([("날짜", "date"), ("제목", "title")])
    assert (props.date_property, props.title_property) == ("날짜", "제목")

    with pytest.raises(SchemaDetectionError) as exc:
        detect_todo_properties([("제목", "title")])
    assert exc.value.role == "date"


def test_columns_keep_notion_order():
    columns = columns_from_notion({"b": {"type": "title"}, "a": {"type": "date"}})
    assert columns == [("b", "title"), ("a", "date")]
    assert find_column(columns, "date") == ("a", "date")
    assert find_column(columns, "author") is None
