from types import SimpleNamespace
import pytest
from starlette.datastructures import QueryParams
from toyshare.utils.filters import as_list, matches_search, matches_tags, parse_bool, parse_toy_filters


def test_as_list_variants():
    assert as_list(None) == []
    assert as_list("Good") == ["Good"]
    assert as_list("Good, New,,") == ["Good", "New"]
    assert as_list(["Good", "New,Fair", "Good"]) == ["Good", "New", "Fair"]
    assert as_list(["all", "Any", "Books"]) == ["Books"]


def test_repeated_and_comma_separated_params_merge():
    f = parse_toy_filters(QueryParams("condition=Good&condition=Like New,Fair&location=London"))
    assert f.conditions == ["Good", "Like New", "Fair"]
    assert f.locations == ["London"]
    assert not f.has_geo


def test_locations_keep_commas():
    f = parse_toy_filters(QueryParams("location=Seattle, WA&location=Portland&location=Seattle, WA"))
    assert f.locations == ["Seattle, WA", "Portland"]
    assert as_list("Seattle, WA", split=False) == ["Seattle, WA"]


def test_camel_and_snake_case_keys():
    f = parse_toy_filters(QueryParams("ageRange=3-5 years&age_range=6-8 years&isAvailable=true&userId=7"))
    assert f.age_ranges == ["3-5 years", "6-8 years"]
    assert f.is_available is True
    assert f.user_id == 7


def test_all_sentinel_means_no_filter():
    f = parse_toy_filters({"category": "all", "condition": "any"})
    assert f.categories == []
    assert f.conditions == []


def test_search_and_tags():
    f = parse_toy_filters(QueryParams("search=  train &tags=wooden,eco&tag=lego"))
    assert f.search == "train"
    assert f.tags == ["wooden", "eco", "lego"]


def test_geo_uses_default_distance():
    f = parse_toy_filters({"latitude": "51.5", "longitude": "-0.12"}, default_distance=10.0)
    assert f.has_geo
    assert f.distance == 10.0


def test_geo_requires_both_coordinates():
    f = parse_toy_filters({"latitude": "51.5", "distance": "5"})
    assert not f.has_geo
    assert f.latitude is None


def test_geo_aliases_and_explicit_distance():
    f = parse_toy_filters(QueryParams("lat=10&lng=20&radius=2.5"))
    assert (f.latitude, f.longitude, f.distance) == (10.0, 20.0, 2.5)


@pytest.mark.parametrize("query", [
    {"latitude": "91", "longitude": "0"},
    {"latitude": "abc", "longitude": "0"},
    {"latitude": "10", "longitude": "10", "distance": "0"},
    {"latitude": "10", "longitude": "10", "distance": "-3"},
    {"latitude": "10", "longitude": "10", "distance": "far"},
    {"userId": "abc"},
    {"isAvailable": "maybe"},
])
def test_invalid_values_raise(query):
    with pytest.raises(ValueError):
        parse_toy_filters(query)


def test_parse_bool():
    assert parse_bool(None) is None
    assert parse_bool("YES") is True
    assert parse_bool("0") is False


def test_matches_tags_any_of():
    assert matches_tags(["wooden", "train"], [])
    assert matches_tags(["wooden", "train"], ["lego", "train"])
    assert not matches_tags(["wooden"], ["lego"])
    assert not matches_tags(None, ["lego"])


def test_matches_search_title_description_tags():
    toy = SimpleNamespace(title="Wooden Train", description="Classic set", tags=["Railway"])
    assert matches_search(toy, None)
    assert matches_search(toy, "train")
    assert matches_search(toy, "CLASSIC")
    assert matches_search(toy, "rail")
    assert not matches_search(toy, "doll")
