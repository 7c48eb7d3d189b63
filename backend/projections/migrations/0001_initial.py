from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("accounting", "0001_initial"),
        ("events", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AccountBalance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("balance", models.DecimalField(
                    decimal_places=2,
                    default=Decimal("0.00"),
                    help_text="Current balance (positive = normal direction)",
                    max_digits=18,
                )),
                ("debit_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("credit_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("entry_count", models.IntegerField(
                    default=0,
                    help_text="Posted, non-voided entries touching this account",
                )),
                ("last_entry_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("account", models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="projected_balance",
                    to="accounting.account",
                )),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="account_balances",
                    to="accounts.business",
                )),
                ("last_event", models.ForeignKey(
                    blank=True,
                    help_text="Last event that updated this balance",
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+",
                    to="events.businessevent",
                )),
            ],
            options={
                "verbose_name": "Account Balance",
                "verbose_name_plural": "Account Balances",
                "indexes": [
                    models.Index(fields=["business", "account"], name="balance_business_account_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProjectionAppliedEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("projection_name", models.CharField(max_length=100)),
                ("applied_at", models.DateTimeField(auto_now_add=True)),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="applied_projection_events",
                    to="accounts.business",
                )),
                ("event", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="+",
                    to="events.businessevent",
                )),
            ],
            options={
                "indexes": [
                    models.Index(fields=["business", "projection_name"], name="applied_business_proj_idx"),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="projectionappliedevent",
            constraint=models.UniqueConstraint(
                fields=("business", "projection_name", "event"),
                name="uniq_projection_event",
            ),
        ),
    ]
