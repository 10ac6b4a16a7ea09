from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "user", "amount", "currency", "status", "created_at")
    list_filter = ("status", "currency")
    search_fields = ("transaction_id", "user__email", "booking__fitness_class__title")
    readonly_fields = ("status", "transaction_id", "amount", "currency", "receipt_url", "created_at")

    def has_delete_permission(self, request, obj=None):
        return False
