"""Invocation and outcome types

An Invocation lives for one loop iteration: fetched, handed to the
handler once, and resolved by exactly one Success or Failure submission.
"""

from dataclasses import dataclass
from typing import Union


# Error classification reported for handler-originated failures
HANDLER_ERROR_TYPE = "Runtime.HandlerError"


@dataclass(frozen=True)
class Invocation:
    """One unit of work from the control plane"""
    request_id: str
    payload: bytes

    def __post_init__(self):
        if not self.request_id:
            raise ValueError("request_id must be non-empty")

    def __repr__(self):
        return f"Invocation(request_id={self.request_id!r}, payload=<{len(self.payload)} bytes>)"


@dataclass(frozen=True)
class Success:
    """Handler output, passed through unmodified"""
    output: bytes


@dataclass(frozen=True)
class Failure:
    """Handler failure with a human-readable message"""
    message: str
    error_type: str = HANDLER_ERROR_TYPE


Outcome = Union[Success, Failure]
