"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    ImmutableModelMixin: Reject updates and deletes of persisted rows

Usage:
    from core.models import BaseModel
    from core.model_mixins import ImmutableModelMixin, UUIDPrimaryKeyMixin

    class Transaction(UUIDPrimaryKeyMixin, ImmutableModelMixin, BaseModel):
        amount_paisa = models.PositiveBigIntegerField()
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Payment, order and earning ids end up in gateway metadata and
    callback URLs, so they must not reveal record counts or be guessable.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class ImmutableModelMixin(models.Model):
    """
    Append-only rows: once inserted they can be neither updated nor deleted.

    Corrections are made by appending a new, reversing row. Queryset-level
    ``update()``/``delete()`` are not intercepted; admin and services only
    go through instance methods.

    Raises:
        ValueError: On save() of an existing row or on delete()
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(
                f"{self.__class__.__name__} rows are immutable and cannot be updated"
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(
            f"{self.__class__.__name__} rows are immutable and cannot be deleted"
        )
