from __future__ import annotations

import pytest

from video_dimensions.services import tag_state
from video_dimensions.services.tag_state import TagShape, TagStateKind


@pytest.mark.parametrize(
    ("raw", "shape", "tokens"),
    [
        (None, TagShape.empty, ()),
        ("", TagShape.empty, ()),
        ("   ", TagShape.empty, ()),
        ('["promo","reprocess"]', TagShape.json_array, ("promo", "reprocess")),
        ('[ "promo" , "" , null ]', TagShape.json_array, ("promo",)),
        ("promo, reprocess,,", TagShape.comma_list, ("promo", "reprocess")),
        ("reprocess", TagShape.comma_list, ("reprocess",)),
        ('["broken",', TagShape.comma_list, ('["broken"',)),
        ('["broken",]', TagShape.json_array, ()),
        ('{"a": 1}', TagShape.comma_list, ('{"a": 1}',)),
    ],
)
def test_parse_tags_detects_shape(raw, shape, tokens) -> None:
    parsed = tag_state.parse_tags(raw)
    assert parsed.shape == shape
    assert parsed.tokens == tokens


def test_classify_manual_override_wins_over_bare_reprocess() -> None:
    state = tag_state.classify_tags('["reprocess","REPROCESS:1920X1080"]')
    assert state.kind == TagStateKind.override
    assert (state.width, state.height) == (1920, 1080)
    assert state.has_directive


def test_classify_failed_marker_wins_over_directives() -> None:
    state = tag_state.classify_tags("reprocess:640x360,Processing-Failed")
    assert state.kind == TagStateKind.failed
    assert not state.has_directive


@pytest.mark.parametrize("raw", ["reprocess:abcxdef", "reprocess:0x720", "reprocess:1280x0", "reprocessed", "reprocess:12x"])
def test_malformed_override_tokens_are_not_directives(raw: str) -> None:
    state = tag_state.classify_tags(raw)
    assert state.kind == TagStateKind.none
    assert not state.has_directive


def test_classify_bare_reprocess_is_case_insensitive() -> None:
    assert tag_state.classify_tags("promo,ReProcess").kind == TagStateKind.reprocess


def test_clear_directives_keeps_json_shape() -> None:
    cleared = tag_state.clear_directives('["promo","reprocess:1920x1080","reprocess","hero"]')
    assert cleared == '["promo","hero"]'


def test_clear_directives_keeps_comma_shape() -> None:
    assert tag_state.clear_directives("promo, reprocess ,,hero") == "promo,hero"


@pytest.mark.parametrize("raw", ["reprocess", '["reprocess"]', "reprocess:1920x1080", '[""]', "", None, ",,"])
def test_clear_directives_returns_none_when_nothing_remains(raw) -> None:
    assert tag_state.clear_directives(raw) is None


def test_clear_directives_unparseable_array_falls_back_to_no_tags() -> None:
    assert tag_state.clear_directives('["reprocess" "x"]') is None


def test_clear_directives_leaves_malformed_override_and_failed_marker() -> None:
    assert tag_state.clear_directives("reprocess:abcxdef,processing-failed,reprocess") == "reprocess:abcxdef,processing-failed"


@pytest.mark.parametrize(
    "raw",
    ['["promo","reprocess:1920x1080"]', "promo, reprocess", "reprocess", '["x",', None, '["a","a"]'],
)
def test_clear_directives_is_idempotent(raw) -> None:
    once = tag_state.clear_directives(raw)
    assert tag_state.clear_directives(once) == once


@pytest.mark.parametrize("raw", [None, "", '[""]', "[]"])
def test_mark_failed_on_empty_tags_produces_single_marker_array(raw) -> None:
    assert tag_state.mark_failed(raw) == '["processing-failed"]'


def test_mark_failed_preserves_shape() -> None:
    assert tag_state.mark_failed('["promo"]') == '["promo","processing-failed"]'
    assert tag_state.mark_failed("promo, hero") == "promo,hero,processing-failed"


def test_mark_failed_unparseable_array_falls_back_to_marker_only() -> None:
    assert tag_state.mark_failed('["promo" "hero"]') == '["processing-failed"]'


@pytest.mark.parametrize("raw", [None, '["promo"]', "promo", "PROCESSING-FAILED", '["processing-failed"]'])
def test_mark_failed_is_idempotent(raw) -> None:
    once = tag_state.mark_failed(raw)
    twice = tag_state.mark_failed(once)
    assert twice == once
    assert twice.lower().count("processing-failed") == 1


def test_mark_failed_after_clear_on_consumed_directive() -> None:
    assert tag_state.mark_failed(tag_state.clear_directives("reprocess")) == '["processing-failed"]'
    assert tag_state.mark_failed(tag_state.clear_directives('["hero","reprocess"]')) == '["hero","processing-failed"]'


def test_non_string_array_items_survive_rewrites() -> None:
    raw = '[1920,"reprocess",{"k":1},true]'
    assert tag_state.parse_tags(raw).tokens == (1920, "reprocess", {"k": 1}, True)
    assert tag_state.classify_tags(raw).kind == TagStateKind.reprocess
    assert tag_state.clear_directives(raw) == '[1920,{"k":1},true]'
    assert tag_state.mark_failed('[1920,{"k":1}]') == '[1920,{"k":1},"processing-failed"]'


def test_non_string_array_items_are_never_directives() -> None:
    assert tag_state.classify_tags("[0, false]").kind == TagStateKind.none
    assert tag_state.clear_directives("[0, false]") == "[0,false]"
