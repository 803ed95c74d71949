"""RFC 9457 Problem Details payloads for tsdocsync failures.

Errors raised by the generation pass carry a Problem Details payload so the
CLI can log a structured description of what went wrong next to the plain
stderr message.

Examples
--------
>>> from tsdocsync.problem_details import ProblemDetailsParams, build_problem_details
>>> problem = build_problem_details(
...     ProblemDetailsParams(
...         problem_type="https://tsdocsync.dev/problems/no-exports",
...         title="NoExportsError",
...         status=422,
...         detail="No exports found in src/empty.ts",
...         instance="urn:tsdocsync:src/empty.ts",
...     )
... )
>>> problem["status"]
422
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, TypedDict

__all__ = [
    "BASE_TYPE_URI",
    "JsonValue",
    "ProblemDetails",
    "ProblemDetailsParams",
    "build_problem_details",
    "render_problem",
]

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list[JsonValue] | dict[str, JsonValue]

BASE_TYPE_URI: Final[str] = "https://tsdocsync.dev/problems"


class ProblemDetails(TypedDict, total=False):
    """TypedDict for RFC 9457 Problem Details payloads."""

    type: str
    title: str
    status: int
    detail: str
    instance: str
    code: str
    extensions: dict[str, JsonValue]


@dataclass(slots=True)
class ProblemDetailsParams:
    """Parameters used to construct a Problem Details payload."""

    problem_type: str
    title: str
    status: int
    detail: str
    instance: str
    code: str | None = None
    extensions: Mapping[str, JsonValue] | None = None


def build_problem_details(params: ProblemDetailsParams, /) -> ProblemDetails:
    """Build an RFC 9457 Problem Details payload.

    Parameters
    ----------
    params : ProblemDetailsParams
        Fields of the payload. ``code`` and ``extensions`` are emitted only
        when set.

    Returns
    -------
    ProblemDetails
        Payload with ``type``, ``title``, ``status``, ``detail`` and
        ``instance`` plus the optional fields.

    Raises
    ------
    ValueError
        If ``status`` is outside the 4xx/5xx range.
    """
    if not 400 <= params.status <= 599:  # noqa: PLR2004
        message = f"Problem Details status must be a 4xx/5xx code, got {params.status}"
        raise ValueError(message)
    payload: ProblemDetails = {
        "type": params.problem_type,
        "title": params.title,
        "status": params.status,
        "detail": params.detail,
        "instance": params.instance,
    }
    if params.code is not None:
        payload["code"] = params.code
    if params.extensions:
        payload["extensions"] = dict(params.extensions)
    return payload


def render_problem(problem: ProblemDetails) -> str:
    """Return ``problem`` as a compact, key-sorted JSON string."""
    return json.dumps(problem, sort_keys=True, default=str)
