"""Processors wired through INTEGRATION_RETRY_PROCESSOR in tests."""
from uuid import uuid4


class MappingError(Exception):
    pass


def resolve_ok(row):
    return uuid4()


def always_fail(row):
    raise MappingError("Observation.code missing")


def fail_when_flagged(row):
    if row.payload.get("broken"):
        raise MappingError("broken payload")
    return None
