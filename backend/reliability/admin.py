from django.contrib import admin, messages

from .models import Asset, Incident, Ticket
from .services import build_engine


@admin.register(Asset)
class AssetAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "tenant_id", "analysis_status", "thumbnail_status", "thumbnail_retry_count", "updated_at")
    list_filter = ("analysis_status", "thumbnail_status")
    search_fields = ("id", "title", "original_filename", "tenant_id")
    readonly_fields = ("id", "created_at", "updated_at")


class TicketInline(admin.TabularInline):
    model = Ticket
    extra = 0
    fields = ("ticket_id", "priority", "status", "title", "created_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Incident)
class IncidentAdmin(admin.ModelAdmin):
    list_display = ("title", "severity", "source_type", "source_id", "retryable", "detected_at", "resolved_at", "auto_resolved")
    list_filter = ("severity", "source_type", "auto_resolved", "retryable")
    search_fields = ("id", "title", "source_id", "unique_signature", "tenant_id")
    readonly_fields = ("id", "detected_at", "resolved_at", "auto_resolved", "timeline", "version", "created_at", "updated_at")
    inlines = [TicketInline]
    actions = ["attempt_recovery", "escalate_to_ticket", "resolve_incidents"]

    @admin.action(description="Attempt recovery")
    def attempt_recovery(self, request, queryset):
        engine = build_engine()
        resolved = sum(1 for incident in queryset if engine.attempt_recovery(incident).resolved)
        self.message_user(request, f"Recovered {resolved} of {queryset.count()} incident(s).", messages.INFO)

    @admin.action(description="Escalate to ticket")
    def escalate_to_ticket(self, request, queryset):
        engine = build_engine()
        tickets = [ticket for ticket in (engine.escalate(incident) for incident in queryset) if ticket is not None]
        self.message_user(request, f"{len(tickets)} incident(s) have an open ticket.", messages.INFO)

    @admin.action(description="Resolve")
    def resolve_incidents(self, request, queryset):
        engine = build_engine()
        for incident in queryset:
            engine.resolve(incident)
        self.message_user(request, "Selected incidents resolved.", messages.SUCCESS)


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ("ticket_id", "title", "priority", "status", "source", "created_at")
    list_filter = ("priority", "status", "source")
    search_fields = ("ticket_id", "title")
    readonly_fields = ("ticket_id", "incident", "metadata", "timeline", "created_at", "updated_at", "resolved_at")

    def has_add_permission(self, request):
        return False
