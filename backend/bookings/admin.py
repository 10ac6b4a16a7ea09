from django.contrib import admin

from payments.models import Payment

from .models import Booking


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("amount", "currency", "status", "transaction_id", "created_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("fitness_class", "user", "trainer", "date", "start_time", "status", "payment_status")
    list_filter = ("status", "payment_status")
    search_fields = ("fitness_class__title", "user__email", "trainer__email")
    readonly_fields = ("payment_status",)
    inlines = [PaymentInline]
