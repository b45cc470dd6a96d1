# accounting/models/chart.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models


class ChartOfAccounts(models.Model):
    """
    One Chart of Accounts per tenant (farm/ranch operation).

    Rules:
    - tenant_id is the stable key every engine call scopes by.
    - Accounts, journal entries and posting intents hang off the chart,
      so cross-tenant postings are impossible by construction.
    """

    tenant_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=100)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Chart of Accounts"
        verbose_name_plural = "Charts of Accounts"
        ordering = ["tenant_id"]

    def __str__(self):
        return f"{self.name} ({self.tenant_id})"

    def clean(self):
        self.tenant_id = (self.tenant_id or "").strip()
        self.name = (self.name or "").strip()

        if not self.tenant_id:
            raise ValidationError({"tenant_id": "tenant_id is required"})
        if not self.name:
            raise ValidationError({"name": "name is required"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
