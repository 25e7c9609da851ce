import hashlib
import re

import pytest

from reqcache.workflows.cache_store import CacheStore, cache_key
from reqcache.workflows.errors import InvalidRequestError
from reqcache.workflows.request_args import (
    BodyJSON,
    FetchRequest,
    Header,
    Param,
    QueryParam,
    serialize_args,
)


def test_cache_key_is_empty_without_root():
    assert cache_key("GET", "https://example.com/a") == ""
    assert cache_key("GET", "https://example.com/a", root="") == ""


def test_cache_key_layout_without_args(tmp_path):
    url = "https://example.com/a"
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()
    assert cache_key("GET", url, root=tmp_path) == f"{tmp_path}/.{digest}.GET.cache"


def test_cache_key_is_deterministic(tmp_path):
    args = (Header({"Accept": "text/html"}), QueryParam({"page": 2}))
    first = cache_key("GET", "https://example.com/a", *args, root=tmp_path)
    second = cache_key("GET", "https://example.com/a", *args, root=tmp_path)
    assert first == second
    assert re.search(r"/\.[0-9a-f]{32}\.GET\.cache$", first)


def test_cache_key_differs_by_method_url_and_args(tmp_path):
    base = cache_key("GET", "https://example.com/a", root=tmp_path)
    assert cache_key("POST", "https://example.com/a", root=tmp_path) != base
    assert cache_key("GET", "https://example.com/b", root=tmp_path) != base
    assert cache_key("GET", "https://example.com/a", Header({"X": "1"}), root=tmp_path) != base


def test_cache_key_method_is_upper_cased(tmp_path):
    assert cache_key("get", "https://example.com/a", root=tmp_path).endswith(".GET.cache")


def test_argument_kind_is_part_of_the_key(tmp_path):
    url = "https://example.com/a"
    as_header = cache_key("GET", url, Header({"k": "v"}), root=tmp_path)
    as_param = cache_key("GET", url, Param({"k": "v"}), root=tmp_path)
    as_query = cache_key("GET", url, QueryParam({"k": "v"}), root=tmp_path)
    assert len({as_header, as_param, as_query}) == 3


def test_mapping_order_does_not_change_serialization():
    assert serialize_args([Header({"a": "1", "b": "2"})]) == serialize_args([Header({"b": "2", "a": "1"})])


def test_plain_dict_is_treated_as_param():
    assert serialize_args([{"k": "v"}]) == serialize_args([Param({"k": "v"})])


def test_serialize_args_empty_and_bodies():
    assert serialize_args([]) == ""
    assert serialize_args(["raw"]) != serialize_args([b"raw"])
    assert serialize_args([BodyJSON({"a": 1})]) == '[{"json":{"a":1}}]'


def test_fetch_request_normalizes_and_validates():
    request = FetchRequest("get", "https://example.com/a", [Header({"X": "1"})])
    assert request.method == "GET"
    assert isinstance(request.args, tuple)
    assert request.serialized == serialize_args(request.args)
    assert request == FetchRequest("GET", "https://example.com/a", (Header({"X": "1"}),))

    with pytest.raises(ValueError):
        FetchRequest("DELETE", "https://example.com/a")
    with pytest.raises(ValueError):
        FetchRequest("GET", "   ")


def test_fetch_request_snapshot_survives_argument_mutation():
    headers = Header({"X": "1"})
    request = FetchRequest("GET", "https://example.com/a", (headers,))
    before = request.serialized
    headers["X"] = "2"
    assert request.serialized == before


def test_unsupported_argument_types_are_rejected_up_front():
    with pytest.raises(InvalidRequestError) as excinfo:
        FetchRequest("post", "https://example.com/a", (Header({"X": "1"}), object()))
    assert excinfo.value.url == "https://example.com/a"
    assert excinfo.value.method == "POST"
    assert isinstance(excinfo.value, TypeError)

    with pytest.raises(TypeError):
        serialize_args([42])


def test_unencodable_json_body_is_rejected():
    with pytest.raises(InvalidRequestError):
        FetchRequest("POST", "https://example.com/a", (BodyJSON({"when": object()}),))


def test_store_key_for_validates_arguments(tmp_path):
    store = CacheStore(tmp_path)
    with pytest.raises(InvalidRequestError):
        store.key_for("GET", "https://example.com/a", object())
