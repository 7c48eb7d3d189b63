import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BusinessSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("next_value", models.BigIntegerField(default=1)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="sequences",
                    to="accounts.business",
                )),
            ],
        ),
        migrations.AddConstraint(
            model_name="businesssequence",
            constraint=models.UniqueConstraint(fields=("business", "name"), name="uniq_business_sequence_name"),
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("code", models.CharField(max_length=20)),
                ("name", models.CharField(max_length=255)),
                ("account_type", models.CharField(
                    choices=[
                        ("asset", "Asset"),
                        ("liability", "Liability"),
                        ("equity", "Equity"),
                        ("revenue", "Revenue"),
                        ("expense", "Expense"),
                    ],
                    max_length=20,
                )),
                ("is_active", models.BooleanField(default=True)),
                ("description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="accounts",
                    to="accounts.business",
                )),
            ],
            options={
                "ordering": ["code"],
                "indexes": [
                    models.Index(fields=["business", "account_type"], name="account_business_type_idx"),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="account",
            constraint=models.UniqueConstraint(fields=("business", "code"), name="uniq_account_code_per_business"),
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("entry_number", models.CharField(max_length=50)),
                ("entry_date", models.DateField()),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("status", models.CharField(
                    choices=[
                        ("draft", "Draft"),
                        ("ask_for_review", "Ask for review"),
                        ("posted", "Posted"),
                        ("voided", "Voided"),
                    ],
                    default="draft",
                    max_length=20,
                )),
                ("source_type", models.CharField(
                    choices=[
                        ("manual", "Manual"),
                        ("invoice", "Invoice"),
                        ("bill", "Bill"),
                        ("expense", "Expense"),
                    ],
                    default="manual",
                    max_length=20,
                )),
                ("source_id", models.CharField(blank=True, default="", max_length=100)),
                ("review_requested_at", models.DateTimeField(blank=True, null=True)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("void_reason", models.TextField(blank=True, default="")),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="journal_entries",
                    to="accounts.business",
                )),
                ("created_by", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="created_journal_entries",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("posted_by", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="posted_journal_entries",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("review_requested_by", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("voided_by", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="voided_journal_entries",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "ordering": ["-entry_date", "-id"],
                "indexes": [
                    models.Index(fields=["business", "entry_date", "id"], name="entry_business_date_idx"),
                    models.Index(fields=["business", "status"], name="entry_business_status_idx"),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="journalentry",
            constraint=models.UniqueConstraint(
                fields=("business", "entry_number"),
                name="uniq_entry_number_per_business",
            ),
        ),
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("line_order", models.PositiveIntegerField()),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("debit", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="journal_lines",
                    to="accounting.account",
                )),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="journal_lines",
                    to="accounts.business",
                )),
                ("entry", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="lines",
                    to="accounting.journalentry",
                )),
            ],
            options={
                "ordering": ["entry", "line_order"],
                "indexes": [
                    models.Index(fields=["business", "account"], name="line_business_account_idx"),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="journalline",
            constraint=models.UniqueConstraint(fields=("entry", "line_order"), name="uniq_line_order_per_entry"),
        ),
        migrations.AddConstraint(
            model_name="journalline",
            constraint=models.CheckConstraint(
                condition=models.Q(("debit__gte", 0), ("credit__gte", 0)),
                name="chk_line_non_negative",
            ),
        ),
    ]
