from django.contrib import admin

from payments.models import Payment

from .models import Reservation


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    can_delete = False
    fields = ("stripe_payment_intent_id", "amount", "currency", "status", "refund_amount", "refund_failed_at")
    readonly_fields = fields


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ("room", "guest", "check_in", "check_out", "guests", "total_amount", "status")
    list_filter = ("status", "room__room_type")
    search_fields = ("room__name", "guest__email", "guest__username")
    date_hierarchy = "check_in"
    readonly_fields = ("total_amount", "created_at", "updated_at", "confirmed_at", "cancelled_at")
    inlines = [PaymentInline]
