# accounting/models/account.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.chart import ChartOfAccounts


class Account(models.Model):
    """
    Represents a single account within a tenant's Chart of Accounts.

    Guarantees:
    - Account codes are unique per chart
    - normal_balance is derived from account_type when not given
    - System accounts keep their identity (code/name/type) and stay active
    - Balance is never stored here; it is derived from posted journal lines
    """

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    COGS = "COGS"

    ACCOUNT_TYPES = [
        (ASSET, "Asset"),
        (LIABILITY, "Liability"),
        (EQUITY, "Equity"),
        (INCOME, "Income"),
        (EXPENSE, "Expense"),
        (COGS, "Cost of Goods Sold"),
    ]

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

    NORMAL_BALANCES = [
        (DEBIT, "Debit"),
        (CREDIT, "Credit"),
    ]

    DEBIT_NORMAL_TYPES = (ASSET, EXPENSE, COGS)

    chart = models.ForeignKey(
        ChartOfAccounts,
        on_delete=models.PROTECT,
        related_name="accounts",
    )

    code = models.CharField(max_length=10)
    name = models.CharField(max_length=150)

    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPES)
    normal_balance = models.CharField(max_length=6, choices=NORMAL_BALANCES, blank=True)

    # Semantic key used by the resolver ("inventory", "accounts_payable", ...)
    subtype = models.CharField(max_length=50, blank=True, default="")

    is_system = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        verbose_name = "Account"
        verbose_name_plural = "Accounts"
        indexes = [
            models.Index(fields=["chart", "code"]),
            models.Index(fields=["chart", "subtype"]),
            models.Index(fields=["is_active"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["chart", "code"],
                name="uniq_account_chart_code",
            ),
            models.CheckConstraint(
                condition=~Q(code=""),
                name="chk_account_code_not_blank",
            ),
            models.CheckConstraint(
                condition=~Q(name=""),
                name="chk_account_name_not_blank",
            ),
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"

    @classmethod
    def default_normal_balance(cls, account_type: str) -> str:
        return cls.DEBIT if account_type in cls.DEBIT_NORMAL_TYPES else cls.CREDIT

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == self.DEBIT

    def clean(self):
        self.code = (self.code or "").strip()
        self.name = (self.name or "").strip()
        self.subtype = (self.subtype or "").strip().lower()

        if not self.code:
            raise ValidationError("Account code is required")
        if not self.name:
            raise ValidationError("Account name is required")

        if not self.normal_balance:
            self.normal_balance = self.default_normal_balance(self.account_type)

        if self.pk:
            previous = (
                Account.objects.filter(pk=self.pk)
                .values("code", "name", "account_type", "normal_balance", "is_system")
                .first()
            )
            if previous and previous["is_system"]:
                for field in ("code", "name", "account_type", "normal_balance"):
                    if previous[field] != getattr(self, field):
                        raise ValidationError(f"System account {field} cannot be changed")
                if not self.is_system:
                    raise ValidationError("System accounts cannot be demoted")
                if not self.is_active:
                    raise ValidationError("System accounts cannot be deactivated")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Accounts cannot be deleted; deactivate instead")
