import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Asset",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tenant_id", models.CharField(blank=True, max_length=64, null=True)),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("original_filename", models.CharField(blank=True, default="", max_length=255)),
                ("mime_type", models.CharField(blank=True, default="", max_length=100)),
                (
                    "analysis_status",
                    models.CharField(
                        choices=[
                            ("uploading", "Uploading"),
                            ("generating_thumbnails", "Generating Thumbnails"),
                            ("extracting_metadata", "Extracting Metadata"),
                            ("complete", "Complete"),
                            ("promotion_failed", "Promotion Failed"),
                        ],
                        default="uploading",
                        max_length=40,
                    ),
                ),
                (
                    "thumbnail_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("skipped", "Skipped"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("thumbnail_retry_count", models.IntegerField(default=0)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["analysis_status"], name="asset_analysis_status_idx"),
                    models.Index(fields=["tenant_id", "-created_at"], name="asset_tenant_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Incident",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tenant_id", models.CharField(blank=True, max_length=64, null=True)),
                ("source_type", models.CharField(max_length=40)),
                ("source_id", models.CharField(blank=True, max_length=64, null=True)),
                (
                    "severity",
                    models.CharField(
                        choices=[
                            ("info", "Info"),
                            ("warning", "Warning"),
                            ("error", "Error"),
                            ("critical", "Critical"),
                        ],
                        default="warning",
                        max_length=20,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField(blank=True, null=True)),
                ("retryable", models.BooleanField(default=False)),
                ("requires_support", models.BooleanField(default=False)),
                ("unique_signature", models.CharField(blank=True, max_length=255, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("timeline", models.JSONField(blank=True, default=list)),
                ("detected_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("auto_resolved", models.BooleanField(default=False)),
                ("version", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-detected_at"],
                "indexes": [
                    models.Index(fields=["source_type", "source_id"], name="incident_source_idx"),
                    models.Index(fields=["resolved_at", "detected_at"], name="incident_open_detected_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(resolved_at__isnull=True, unique_signature__isnull=False),
                        fields=("unique_signature",),
                        name="reliability_open_incident_signature_uniq",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Ticket",
            fields=[
                ("ticket_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "source",
                    models.CharField(choices=[("system", "System"), ("manual", "Manual")], default="system", max_length=20),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("open", "Open"),
                            ("in_progress", "In Progress"),
                            ("resolved", "Resolved"),
                            ("closed", "Closed"),
                        ],
                        default="open",
                        max_length=20,
                    ),
                ),
                (
                    "priority",
                    models.CharField(choices=[("P0", "P0"), ("P1", "P1"), ("P2", "P2")], default="P2", max_length=4),
                ),
                ("assignee", models.CharField(blank=True, max_length=100, null=True)),
                ("created_by", models.CharField(blank=True, max_length=100, null=True)),
                ("title", models.CharField(blank=True, max_length=255, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("timeline", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                (
                    "incident",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tickets",
                        to="reliability.incident",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "priority"], name="ticket_status_priority_idx"),
                    models.Index(fields=["source", "status"], name="ticket_source_status_idx"),
                ],
            },
        ),
    ]
