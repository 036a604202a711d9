from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("stripe_payment_intent_id", "reservation", "amount", "currency", "status", "refund_amount", "created_at")
    list_filter = ("status", "currency")
    search_fields = ("stripe_payment_intent_id", "stripe_charge_id", "guest__email")
    readonly_fields = (
        "stripe_payment_intent_id",
        "stripe_client_secret",
        "stripe_charge_id",
        "stripe_refund_id",
        "refund_error_message",
        "refund_failed_at",
    )
