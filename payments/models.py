import uuid
from django.db import models
from django.utils import timezone


class Transaction(models.Model):
    """One STK Push attempt, correlated with its callback by ``checkout_request_id``."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SUCCESS = 'success', 'Success'
        FAILED = 'failed', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    merchant_request_id = models.CharField(max_length=128)
    checkout_request_id = models.CharField(max_length=128, unique=True)
    phone_number = models.CharField(max_length=20)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    account_reference = models.CharField(max_length=64)
    transaction_desc = models.CharField(max_length=128, default='Payment')
    payment_mode = models.CharField(max_length=20, default='stk_push', editable=False)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    # Filled in by the callback
    result_code = models.IntegerField(blank=True, null=True)
    result_desc = models.CharField(max_length=256, blank=True, null=True)
    mpesa_receipt_number = models.CharField(max_length=64, blank=True, null=True)
    transaction_date = models.DateTimeField(blank=True, null=True)
    raw_callback = models.JSONField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.phone_number} - {self.amount} - {self.status}"

    def as_dict(self):
        return {
            'id': str(self.id),
            'merchantRequestId': self.merchant_request_id,
            'checkoutRequestId': self.checkout_request_id,
            'phoneNumber': self.phone_number,
            'amount': str(self.amount),
            'accountReference': self.account_reference,
            'transactionDesc': self.transaction_desc,
            'paymentMode': self.payment_mode,
            'status': self.status,
            'resultCode': self.result_code,
            'resultDesc': self.result_desc,
            'mpesaReceiptNumber': self.mpesa_receipt_number,
            'transactionDate': self.transaction_date.isoformat() if self.transaction_date else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


class ManualPayment(models.Model):
    """A payment the customer reports by its M-Pesa code, pending admin verification."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        VERIFIED = 'verified', 'Verified'
        REJECTED = 'rejected', 'Rejected'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    phone_number = models.CharField(max_length=20)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    mpesa_code = models.CharField(max_length=32, unique=True)
    account_reference = models.CharField(max_length=64)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    verified_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.mpesa_code} - {self.amount} - {self.status}"

    def save(self, *args, **kwargs):
        self.mpesa_code = self.mpesa_code.strip().upper()
        super().save(*args, **kwargs)

    def set_status(self, status):
        """Apply an admin decision; ``verified_at`` is stamped only for ``verified``."""
        self.status = status
        self.verified_at = timezone.now() if status == self.Status.VERIFIED else None
        self.save(update_fields=['status', 'verified_at', 'updated_at'])

    def as_dict(self):
        return {
            'id': str(self.id),
            'phoneNumber': self.phone_number,
            'amount': str(self.amount),
            'mpesaCode': self.mpesa_code,
            'accountReference': self.account_reference,
            'status': self.status,
            'verifiedAt': self.verified_at.isoformat() if self.verified_at else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
