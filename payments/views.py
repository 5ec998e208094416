import json
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .decorators import staff_required
from .diagnostics import run_diagnostics
from .exceptions import MpesaError
from .models import ManualPayment, Transaction
from .services import get_mpesa_client
from .utils import callback_metadata_value, parse_transaction_date

logger = logging.getLogger(__name__)


class BadRequest(Exception):
    pass


def _json_body(request):
    try:
        data = json.loads(request.body.decode('utf-8') or '{}')
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise BadRequest('Invalid JSON body')
    if not isinstance(data, dict):
        raise BadRequest('Invalid JSON body')
    return data


def _positive_amount(value):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise BadRequest('Amount must be a number')
    if not amount.is_finite() or amount <= 0:
        raise BadRequest('Amount must be greater than zero')
    try:
        return amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise BadRequest('Amount is too large')


def _check_fields(instance, exclude=None):
    """Run model field validation so oversized input is a 400, not a failed write."""
    try:
        instance.full_clean(exclude=exclude, validate_unique=False)
    except ValidationError as e:
        raise BadRequest('; '.join(
            f"{field}: {' '.join(messages)}" for field, messages in e.message_dict.items()
        ))


def _get_transaction(transaction_id):
    try:
        return Transaction.objects.get(pk=transaction_id)
    except (Transaction.DoesNotExist, ValidationError):
        return None


@csrf_exempt
@require_POST
def initiate_payment(request):
    try:
        data = _json_body(request)
        phone = data.get('phoneNumber')
        amount = data.get('amount')
        account_reference = data.get('accountReference')
        transaction_desc = data.get('transactionDesc') or 'Payment'
        if not phone or not amount or not account_reference:
            raise BadRequest('Missing required fields')
        txn = Transaction(
            phone_number=str(phone),
            amount=_positive_amount(amount),
            account_reference=str(account_reference),
            transaction_desc=str(transaction_desc),
            status=Transaction.Status.PENDING,
        )
        # Reject what the table cannot hold before the customer gets a prompt
        _check_fields(txn, exclude=['merchant_request_id', 'checkout_request_id'])
    except BadRequest as e:
        return JsonResponse({"error": str(e)}, status=400)

    try:
        resp = get_mpesa_client().stk_push(
            phone=txn.phone_number,
            amount=txn.amount,
            account_reference=txn.account_reference,
            transaction_desc=txn.transaction_desc,
        )
        txn.merchant_request_id = resp.get('MerchantRequestID')
        txn.checkout_request_id = resp.get('CheckoutRequestID')
        txn.save()
    except MpesaError as e:
        logger.error("STK Push failed for %s: %s", phone, e)
        return JsonResponse({"error": str(e)}, status=500)
    except Exception as e:
        logger.exception("STK Push error")
        return JsonResponse({"error": str(e) or "Failed to initiate payment"}, status=500)

    return JsonResponse({
        "success": True,
        "message": resp.get('CustomerMessage'),
        "checkoutRequestId": txn.checkout_request_id,
        "transactionId": str(txn.id),
    })


@csrf_exempt
@require_POST
def payment_callback(request):
    """
    Receive the asynchronous STK result from Safaricom.

    Re-delivery of the same callback writes the same fields again, so the
    Transaction ends up in the same state however often it arrives.
    """
    try:
        payload = json.loads(request.body.decode('utf-8'))
        stk = payload['Body']['stkCallback']
        checkout_request_id = stk['CheckoutRequestID']
        result_code = int(stk['ResultCode'])
        result_desc = stk.get('ResultDesc')

        receipt = None
        transaction_date = None
        metadata = stk.get('CallbackMetadata')
        if result_code == 0 and metadata:
            items = metadata.get('Item', [])
            receipt = callback_metadata_value(items, 'MpesaReceiptNumber')
            date_value = callback_metadata_value(items, 'TransactionDate')
            if date_value:
                transaction_date = timezone.make_aware(parse_transaction_date(date_value))

        txn = Transaction.objects.get(checkout_request_id=checkout_request_id)
        txn.result_code = result_code
        txn.result_desc = result_desc
        txn.status = Transaction.Status.SUCCESS if result_code == 0 else Transaction.Status.FAILED
        txn.mpesa_receipt_number = str(receipt) if receipt is not None else None
        txn.transaction_date = transaction_date
        txn.raw_callback = payload
        txn.save()
        logger.info("Callback applied to %s: status=%s receipt=%s", checkout_request_id, txn.status, receipt)
    except Exception:
        logger.exception("Callback Error")
        return JsonResponse({"success": False}, status=500)

    return JsonResponse({"success": True})


@require_GET
def payment_status(request):
    transaction_id = request.GET.get('id')
    if not transaction_id:
        return JsonResponse({"error": "Transaction ID required"}, status=400)

    txn = _get_transaction(transaction_id)
    if txn is None:
        return JsonResponse({"error": "Transaction not found"}, status=404)
    return JsonResponse({"transaction": txn.as_dict()})


@require_GET
def query_payment_status(request):
    transaction_id = request.GET.get('id')
    if not transaction_id:
        return JsonResponse({"error": "Transaction ID required"}, status=400)

    txn = _get_transaction(transaction_id)
    if txn is None:
        return JsonResponse({"error": "Transaction not found"}, status=404)
    if not txn.checkout_request_id:
        return JsonResponse({"error": "Cannot query status: missing CheckoutRequestID on this transaction."}, status=400)

    try:
        body = get_mpesa_client().stk_query(txn.checkout_request_id)
    except MpesaError as e:
        return JsonResponse({"error": str(e)}, status=500)

    return JsonResponse({
        "transactionId": str(txn.id),
        "checkoutRequestId": txn.checkout_request_id,
        "status": txn.status,
        "resultCode": body.get('ResultCode'),
        "resultDesc": body.get('ResultDesc'),
        "query": body,
    })


def _submit_manual_payment(request):
    try:
        data = _json_body(request)
        phone = data.get('phoneNumber')
        amount = data.get('amount')
        mpesa_code = data.get('mpesaCode')
        account_reference = data.get('accountReference')
        if not phone or not amount or not mpesa_code or not account_reference:
            raise BadRequest('Missing required fields')
        payment = ManualPayment(
            phone_number=str(phone),
            amount=_positive_amount(amount),
            mpesa_code=str(mpesa_code).strip().upper(),
            account_reference=str(account_reference),
            status=ManualPayment.Status.PENDING,
        )
        _check_fields(payment)
    except BadRequest as e:
        return JsonResponse({"error": str(e)}, status=400)

    duplicate = JsonResponse({"error": "This M-Pesa code has already been submitted"}, status=400)
    if ManualPayment.objects.filter(mpesa_code=payment.mpesa_code).exists():
        return duplicate

    try:
        payment.save()
    except IntegrityError:
        # Lost a race with a concurrent submission of the same code
        return duplicate
    except Exception as e:
        logger.exception("Manual Payment Error")
        return JsonResponse({"error": str(e) or "Failed to submit payment"}, status=500)

    return JsonResponse({
        "success": True,
        "message": "Payment submitted for verification",
        "paymentId": str(payment.id),
    })


@staff_required
def _verify_manual_payment(request):
    try:
        data = _json_body(request)
    except BadRequest as e:
        return JsonResponse({"error": str(e)}, status=400)

    payment_id = data.get('paymentId')
    status = data.get('status')
    if not payment_id or not status:
        return JsonResponse({"error": "Missing required fields"}, status=400)
    if status not in ManualPayment.Status.values:
        return JsonResponse({"error": f"Invalid status '{status}'"}, status=400)

    try:
        payment = ManualPayment.objects.get(pk=payment_id)
    except (ManualPayment.DoesNotExist, ValidationError):
        return JsonResponse({"error": "Payment not found"}, status=404)

    try:
        payment.set_status(status)
    except Exception as e:
        logger.exception("Manual payment verification failed for %s", payment_id)
        return JsonResponse({"error": str(e) or "Failed to verify payment"}, status=500)

    logger.info("Manual payment %s marked %s by %s", payment.mpesa_code, status, request.user)
    return JsonResponse({"success": True, "payment": payment.as_dict()})


@csrf_exempt
@require_http_methods(["POST", "PATCH"])
def manual_payment(request):
    if request.method == "PATCH":
        return _verify_manual_payment(request)
    return _submit_manual_payment(request)


@require_GET
@staff_required
def diagnostics(request):
    results = run_diagnostics(get_mpesa_client().config)
    status = 200 if results['step2_token_test']['success'] else 500
    return JsonResponse(results, status=status)
