import uuid
from typing import Optional

from django.db import models
from django.utils import timezone


class Asset(models.Model):
    ANALYSIS_STATUS_CHOICES = [
        ("uploading", "Uploading"),
        ("generating_thumbnails", "Generating Thumbnails"),
        ("extracting_metadata", "Extracting Metadata"),
        ("complete", "Complete"),
        ("promotion_failed", "Promotion Failed"),
    ]
    THUMBNAIL_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("processing", "Processing"),
        ("completed", "Completed"),
        ("failed", "Failed"),
        ("skipped", "Skipped"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField(max_length=64, blank=True, null=True)
    title = models.CharField(max_length=255, blank=True, default="")
    original_filename = models.CharField(max_length=255, blank=True, default="")
    mime_type = models.CharField(max_length=100, blank=True, default="")
    analysis_status = models.CharField(max_length=40, choices=ANALYSIS_STATUS_CHOICES, default="uploading")
    thumbnail_status = models.CharField(max_length=20, choices=THUMBNAIL_STATUS_CHOICES, default="pending")
    thumbnail_retry_count = models.IntegerField(default=0)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["analysis_status"], name="asset_analysis_status_idx"),
            models.Index(fields=["tenant_id", "-created_at"], name="asset_tenant_created_idx"),
        ]

    def __str__(self):
        return f"{self.title or self.original_filename or 'Asset'} ({self.id})"

    def has_dimensions(self) -> bool:
        meta = self.metadata or {}
        if meta.get("dimensions"):
            return True
        return bool(meta.get("image_width") and meta.get("image_height"))


class Incident(models.Model):
    SEVERITY_CHOICES = [
        ("info", "Info"),
        ("warning", "Warning"),
        ("error", "Error"),
        ("critical", "Critical"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField(max_length=64, blank=True, null=True)

    # polymorphic subject reference, e.g. ("asset", <uuid>) or ("job", <id>)
    source_type = models.CharField(max_length=40)
    source_id = models.CharField(max_length=64, blank=True, null=True)

    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES, default="warning")
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True, null=True)

    retryable = models.BooleanField(default=False)
    requires_support = models.BooleanField(default=False)
    unique_signature = models.CharField(max_length=255, blank=True, null=True)

    metadata = models.JSONField(default=dict, blank=True)
    timeline = models.JSONField(default=list, blank=True)

    detected_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)
    auto_resolved = models.BooleanField(default=False)

    # bumped by every retry claim; see DjangoIncidentStore.claim_retry
    version = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-detected_at"]
        indexes = [
            models.Index(fields=["source_type", "source_id"], name="incident_source_idx"),
            models.Index(fields=["resolved_at", "detected_at"], name="incident_open_detected_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["unique_signature"],
                condition=models.Q(resolved_at__isnull=True, unique_signature__isnull=False),
                name="reliability_open_incident_signature_uniq",
            ),
        ]

    def __str__(self):
        return f"Incident: {self.title} ({self.id})"

    @property
    def is_closed(self) -> bool:
        return self.resolved_at is not None

    def repair_attempts(self) -> int:
        meta = self.metadata or {}
        for key in ("repair_attempts", "recovery_attempt_count"):
            value = meta.get(key)
            if value is not None:
                try:
                    return int(value)
                except (TypeError, ValueError):
                    return 0
        return 0

    def append_event(self, event: str, actor: str = "engine", notes: Optional[str] = None) -> None:
        timeline = list(self.timeline or [])
        timeline.append(
            {
                "timestamp": timezone.now().isoformat(),
                "event": event,
                "actor": actor,
                "notes": notes,
            }
        )
        self.timeline = timeline


class Ticket(models.Model):
    TICKET_STATUS_CHOICES = [
        ("open", "Open"),
        ("in_progress", "In Progress"),
        ("resolved", "Resolved"),
        ("closed", "Closed"),
    ]
    SOURCE_CHOICES = [
        ("system", "System"),
        ("manual", "Manual"),
    ]
    PRIORITY_CHOICES = [
        ("P0", "P0"),
        ("P1", "P1"),
        ("P2", "P2"),
    ]
    OPEN_STATUSES = ("open", "in_progress")

    ticket_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    incident = models.ForeignKey(Incident, on_delete=models.CASCADE, related_name="tickets", null=True, blank=True)

    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default="system")
    status = models.CharField(max_length=20, choices=TICKET_STATUS_CHOICES, default="open")
    priority = models.CharField(max_length=4, choices=PRIORITY_CHOICES, default="P2")

    assignee = models.CharField(max_length=100, blank=True, null=True)
    created_by = models.CharField(max_length=100, blank=True, null=True)

    title = models.CharField(max_length=255, blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True)
    timeline = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "priority"], name="ticket_status_priority_idx"),
            models.Index(fields=["source", "status"], name="ticket_source_status_idx"),
        ]

    def __str__(self):
        title = self.title or f"Ticket {self.ticket_id}"
        return f"{title} ({self.ticket_id})"
