import uuid

import django.db.models.deletion
import django.utils.timezone
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
            name="BusinessEventCounter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("last_sequence", models.BigIntegerField(default=0)),
                ("business", models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="event_counter",
                    to="accounts.business",
                )),
            ],
            options={
                "verbose_name": "Business Event Counter",
            },
        ),
        migrations.CreateModel(
            name="BusinessEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("event_type", models.CharField(
                    db_index=True,
                    help_text="Event type name (e.g., 'journal_entry.posted')",
                    max_length=100,
                )),
                ("aggregate_type", models.CharField(
                    db_index=True,
                    help_text="Entity type (e.g., 'Account', 'JournalEntry')",
                    max_length=50,
                )),
                ("aggregate_id", models.CharField(db_index=True, max_length=64)),
                ("idempotency_key", models.CharField(
                    db_index=True,
                    editable=False,
                    help_text="Unique idempotency key per business",
                    max_length=255,
                )),
                ("sequence", models.PositiveIntegerField(
                    default=0,
                    editable=False,
                    help_text="Position in the aggregate stream (1-based)",
                )),
                ("business_sequence", models.BigIntegerField(
                    db_index=True,
                    editable=False,
                    help_text="Monotonic event sequence per business",
                )),
                ("data", models.JSONField(default=dict, help_text="Event data payload")),
                ("metadata", models.JSONField(
                    blank=True,
                    default=dict,
                    help_text="Additional context (source_type, request id, etc.)",
                )),
                ("schema_version", models.PositiveSmallIntegerField(default=1)),
                ("origin", models.CharField(
                    choices=[
                        ("human", "Human (Manual UI)"),
                        ("api", "External API"),
                        ("system", "Internal System Process"),
                    ],
                    db_index=True,
                    default="human",
                    max_length=20,
                )),
                ("recorded_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("occurred_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("business", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="events",
                    to="accounts.business",
                )),
                ("caused_by_user", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="caused_events",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "ordering": ["business_id", "business_sequence"],
                "indexes": [
                    models.Index(
                        fields=["business", "aggregate_type", "aggregate_id", "sequence"],
                        name="event_aggregate_stream_idx",
                    ),
                    models.Index(fields=["business", "event_type", "occurred_at"], name="event_type_occurred_idx"),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="businessevent",
            constraint=models.UniqueConstraint(
                fields=("business", "aggregate_type", "aggregate_id", "sequence"),
                name="uniq_event_business_aggregate_sequence",
            ),
        ),
        migrations.AddConstraint(
            model_name="businessevent",
            constraint=models.UniqueConstraint(
                fields=("business", "idempotency_key"),
                name="uniq_event_business_idempotency_key",
            ),
        ),
        migrations.AddConstraint(
            model_name="businessevent",
            constraint=models.UniqueConstraint(
                fields=("business", "business_sequence"),
                name="uniq_event_business_sequence",
            ),
        ),
        migrations.CreateModel(
            name="EventBookmark",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("consumer_name", models.CharField(
                    help_text="Unique consumer identifier (e.g., 'account_balance')",
                    max_length=100,
                )),
                ("last_processed_at", models.DateTimeField(blank=True, null=True)),
                ("is_paused", models.BooleanField(default=False, help_text="Pause event processing for this consumer")),
                ("error_count", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("business", models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="event_bookmarks",
                    to="accounts.business",
                )),
                ("last_event", models.ForeignKey(
                    blank=True,
                    help_text="Last successfully processed event",
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+",
                    to="events.businessevent",
                )),
            ],
        ),
        migrations.AddConstraint(
            model_name="eventbookmark",
            constraint=models.UniqueConstraint(
                fields=("consumer_name", "business"),
                name="uniq_bookmark_consumer_business",
            ),
        ),
    ]
