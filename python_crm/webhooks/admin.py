"""
Django admin configuration for webhooks app.

Read-only: operators inspect failed deliveries here, nothing is edited.
"""
from django.contrib import admin
from webhooks.models import InboundDelivery, DeliveryFailure


class DeliveryFailureInline(admin.TabularInline):
    """Inline display of terminal failures for a delivery."""
    model = DeliveryFailure
    extra = 0
    readonly_fields = ('failure_reason', 'final_attempts', 'first_failed_at', 'final_failed_at', 'error_message')
    fields = readonly_fields
    can_delete = False


@admin.register(InboundDelivery)
class InboundDeliveryAdmin(admin.ModelAdmin):
    """Admin interface for the idempotency ledger."""

    list_display = ('id', 'idempotency_key', 'status', 'attempts', 'source_system', 'received_at', 'processed_at')
    list_filter = ('status', 'source_system', 'event_type', 'received_at')
    search_fields = ('id', 'idempotency_key', 'error_message')
    readonly_fields = ('id', 'idempotency_key', 'event_type', 'source_system', 'status', 'attempts',
                       'error_message', 'received_at', 'claimed_at', 'processed_at', 'created_at',
                       'updated_at', 'raw_payload', 'source_headers')

    fieldsets = (
        ('Status', {
            'fields': ('id', 'idempotency_key', 'status', 'attempts', 'error_message')
        }),
        ('Timestamps', {
            'fields': ('received_at', 'claimed_at', 'processed_at', 'created_at', 'updated_at')
        }),
        ('Payload', {
            'fields': ('event_type', 'source_system', 'raw_payload'),
            'classes': ('collapse',)
        }),
        ('Audit', {
            'fields': ('source_headers',),
            'classes': ('collapse',)
        }),
    )

    inlines = [DeliveryFailureInline]

    def has_add_permission(self, request):
        """Deliveries only arrive through the webhook endpoint."""
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        """The ledger must keep every key it has seen."""
        return False


@admin.register(DeliveryFailure)
class DeliveryFailureAdmin(admin.ModelAdmin):
    """Admin interface for terminal delivery failures."""

    list_display = ('id', 'delivery', 'failure_reason', 'final_attempts', 'final_failed_at')
    list_filter = ('failure_reason', 'final_failed_at')
    search_fields = ('delivery__id', 'delivery__idempotency_key', 'error_message')
    readonly_fields = ('delivery', 'event_type', 'payload', 'headers', 'error_message', 'stack_trace',
                       'final_attempts', 'first_failed_at', 'final_failed_at', 'failure_reason', 'created_at')

    fieldsets = (
        ('Failure', {
            'fields': ('delivery', 'failure_reason', 'final_attempts', 'first_failed_at', 'final_failed_at')
        }),
        ('Error', {
            'fields': ('error_message', 'stack_trace')
        }),
        ('Payload', {
            'fields': ('event_type', 'payload', 'headers'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
