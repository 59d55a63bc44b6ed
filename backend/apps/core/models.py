"""
Core models - shared base classes.
"""

from django.db import models


class TimestampedModel(models.Model):
    """
    Abstract base model with created_at/updated_at timestamps.

    Note: updated_at uses auto_now, which queryset.update() bypasses.
    Bulk writers must set it explicitly.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
