# backend/cr_core/common/models.py
from __future__ import annotations

import uuid

from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ScopedModel(TimeStampedModel):
    """
    Base for every clinical row: UUID primary key plus the owning tenant.

    Request scope comes from TenantScopeMiddleware / require_scope; services
    always filter on tenant_id so a row never leaks across clinic groups.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.UUIDField(db_index=True)

    class Meta:
        abstract = True
