from django.contrib import admin
from .models import ManualPayment, Transaction

@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ('id', 'phone_number', 'amount', 'account_reference', 'status', 'mpesa_receipt_number', 'created_at')
    search_fields = ('id', 'phone_number', 'merchant_request_id', 'checkout_request_id', 'mpesa_receipt_number')
    list_filter = ('status',)
    readonly_fields = ('merchant_request_id', 'checkout_request_id', 'result_code', 'result_desc',
                       'mpesa_receipt_number', 'transaction_date', 'raw_callback', 'created_at', 'updated_at')


@admin.register(ManualPayment)
class ManualPaymentAdmin(admin.ModelAdmin):
    list_display = ('mpesa_code', 'phone_number', 'amount', 'account_reference', 'status', 'verified_at', 'created_at')
    search_fields = ('mpesa_code', 'phone_number', 'account_reference')
    list_filter = ('status',)
    readonly_fields = ('verified_at', 'created_at', 'updated_at')
    actions = ('mark_verified', 'mark_rejected')

    def _set_status(self, request, queryset, status):
        for payment in queryset:
            payment.set_status(status)
        self.message_user(request, f"{queryset.count()} payment(s) marked {status}.")

    @admin.action(description='Mark selected payments as verified')
    def mark_verified(self, request, queryset):
        self._set_status(request, queryset, ManualPayment.Status.VERIFIED)

    @admin.action(description='Mark selected payments as rejected')
    def mark_rejected(self, request, queryset):
        self._set_status(request, queryset, ManualPayment.Status.REJECTED)
