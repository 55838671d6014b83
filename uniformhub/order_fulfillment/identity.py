"""
Canonical reference helpers.

Orders, approvals and purchase orders point at employees, locations and
companies by business code. Any comparison between two references goes
through ``canonical_ref`` first so that a model instance or an integer
surrogate key fails loudly instead of matching nothing.
"""

from django.db import models

from .exceptions import IdentityRepresentationError


def canonical_ref(value, field: str) -> str:
    if isinstance(value, models.Model) or isinstance(value, bool) or not isinstance(value, str):
        raise IdentityRepresentationError(field, value)
    value = value.strip()
    if not value:
        raise IdentityRepresentationError(field, value)
    return value


def canonical_refs(values, field: str):
    return [canonical_ref(value, field) for value in values]
