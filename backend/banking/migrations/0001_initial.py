import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("accounting", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BankAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("opening_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="bank_accounts",
                    to="accounts.business",
                )),
                ("gl_account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="bank_accounts",
                    to="accounting.account",
                )),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.AddConstraint(
            model_name="bankaccount",
            constraint=models.UniqueConstraint(fields=("business", "name"), name="uniq_bank_account_name_per_business"),
        ),
        migrations.CreateModel(
            name="BankTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("transaction_date", models.DateField()),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("is_reconciled", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="transactions",
                    to="banking.bankaccount",
                )),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="bank_transactions",
                    to="accounts.business",
                )),
            ],
            options={
                "ordering": ["transaction_date", "id"],
                "indexes": [
                    models.Index(fields=["bank_account", "is_reconciled"], name="banktxn_reconciled_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Reconciliation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("statement_date", models.DateField()),
                ("statement_balance", models.DecimalField(decimal_places=2, max_digits=18)),
                ("opening_balance", models.DecimalField(decimal_places=2, max_digits=18)),
                ("status", models.CharField(
                    choices=[("in_progress", "In progress"), ("completed", "Completed")],
                    default="in_progress",
                    max_length=20,
                )),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="reconciliations",
                    to="banking.bankaccount",
                )),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="reconciliations",
                    to="accounts.business",
                )),
                ("completed_by", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("created_by", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("selected_transactions", models.ManyToManyField(
                    blank=True,
                    related_name="+",
                    to="banking.banktransaction",
                )),
            ],
            options={
                "ordering": ["-statement_date", "-id"],
            },
        ),
        migrations.AddConstraint(
            model_name="reconciliation",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status", "in_progress")),
                fields=("bank_account",),
                name="uniq_open_reconciliation_per_bank_account",
            ),
        ),
        migrations.AddField(
            model_name="banktransaction",
            name="reconciliation",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="reconciled_transactions",
                to="banking.reconciliation",
            ),
        ),
    ]
