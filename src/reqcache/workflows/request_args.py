"""Typed request arguments and their canonical cache-key serialization.

Arguments are passed positionally after the URL, e.g.::

    await fetcher.get(url, Header({"Accept": "text/html"}), QueryParam({"page": 2}))

Each value knows how to describe itself for the cache key (tagged by kind, so a
header and a query param with the same contents never share a key) and how it
maps onto aiohttp request keyword arguments.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .errors import InvalidRequestError


class Header(dict):
    """Request headers."""

    kind = "header"


class Param(dict):
    """Query string on GET, form body on POST."""

    kind = "param"


class QueryParam(dict):
    """Query string regardless of method."""

    kind = "query"


@dataclass(frozen=True)
class BodyJSON:
    """JSON request body."""

    value: Any

    kind = "json"


def _stringify_mapping(mapping: Mapping[Any, Any]) -> Dict[str, str]:
    return {str(k): str(v) for k, v in mapping.items()}


SUPPORTED_ARG_TYPES = (Mapping, BodyJSON, str, bytes, bytearray)


def describe_arg(arg: Any) -> Dict[str, Any]:
    """Return the JSON-able description of one argument used in the cache key."""

    if isinstance(arg, (Header, Param, QueryParam)):
        return {arg.kind: _stringify_mapping(arg)}
    if isinstance(arg, Mapping):
        return {Param.kind: _stringify_mapping(arg)}
    if isinstance(arg, BodyJSON):
        return {BodyJSON.kind: arg.value}
    if isinstance(arg, (bytes, bytearray)):
        return {"bytes": hashlib.sha256(bytes(arg)).hexdigest()}
    if isinstance(arg, str):
        return {"body": arg}
    raise TypeError(f"Unsupported request argument type: {type(arg).__name__}")


def serialize_args(args: Iterable[Any]) -> str:
    """Canonical string form of an argument list; empty string when there are none.

    Raises TypeError for argument types without a stable description, including
    JSON bodies holding values ``json`` cannot encode.
    """

    items = [describe_arg(arg) for arg in args]
    if not items:
        return ""
    return json.dumps(items, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


METHODS = ("GET", "POST")


@dataclass(frozen=True)
class FetchRequest:
    """Identity of one logical fetch: method, URL and ordered arguments."""

    method: str
    url: str
    args: Tuple[Any, ...] = field(default=(), compare=False)
    serialized: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        method = (self.method or "").upper()
        if method not in METHODS:
            raise ValueError(f"Unsupported method {self.method!r}; expected one of {', '.join(METHODS)}")
        if not (self.url or "").strip():
            raise ValueError("url must be a non-empty string")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "args", tuple(self.args))
        for arg in self.args:
            if not isinstance(arg, SUPPORTED_ARG_TYPES):
                raise InvalidRequestError(
                    f"Unsupported request argument type: {type(arg).__name__}",
                    operation="build_request",
                    url=self.url,
                    method=method,
                )
        # Snapshot now so later mutation of a dict argument cannot change the key.
        try:
            serialized = serialize_args(self.args)
        except (TypeError, ValueError) as exc:
            raise InvalidRequestError(
                f"Request arguments cannot be serialized: {exc}",
                operation="build_request",
                url=self.url,
                method=method,
            ) from exc
        object.__setattr__(self, "serialized", serialized)


def build_request_kwargs(method: str, args: Iterable[Any]) -> Dict[str, Any]:
    """Translate request arguments into aiohttp ``session.request`` kwargs."""

    method = method.upper()
    headers: Dict[str, str] = {}
    params: Dict[str, str] = {}
    form: Dict[str, str] = {}
    body: Optional[Any] = None
    json_body: Optional[BodyJSON] = None

    for arg in args:
        if isinstance(arg, Header):
            headers.update(_stringify_mapping(arg))
        elif isinstance(arg, QueryParam):
            params.update(_stringify_mapping(arg))
        elif isinstance(arg, Mapping):
            target = params if method == "GET" else form
            target.update(_stringify_mapping(arg))
        elif isinstance(arg, BodyJSON):
            json_body = arg
        elif isinstance(arg, (str, bytes, bytearray)):
            body = arg
        else:
            raise TypeError(f"Unsupported request argument type: {type(arg).__name__}")

    if sum((bool(form), body is not None, json_body is not None)) > 1:
        raise ValueError("Only one of form params, raw body or JSON body may be supplied")

    kwargs: Dict[str, Any] = {}
    if headers:
        kwargs["headers"] = headers
    if params:
        kwargs["params"] = params
    if form:
        kwargs["data"] = form
    elif body is not None:
        kwargs["data"] = body
    elif json_body is not None:
        kwargs["json"] = json_body.value
    return kwargs


__all__ = [
    "Header",
    "Param",
    "QueryParam",
    "BodyJSON",
    "METHODS",
    "FetchRequest",
    "describe_arg",
    "serialize_args",
    "build_request_kwargs",
]
