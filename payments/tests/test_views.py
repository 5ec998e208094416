"""
Payment endpoint tests

Tests for:
- STK Push initiation
- Safaricom callback handling
- Stored status lookup
- Provider-side status query
"""
import json
import uuid
from datetime import datetime
from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone

from payments.models import Transaction

from .helpers import (
    MPESA_TEST_SETTINGS,
    fake_response,
    stk_accepted_response,
    stk_callback_payload,
    token_response,
)


def make_transaction(checkout_request_id='ws_CO_15012024103045123456', **kwargs):
    values = dict(
        merchant_request_id='29115-34620561-1',
        checkout_request_id=checkout_request_id,
        phone_number='0712345678',
        amount=Decimal('100.00'),
        account_reference='ORDER123',
        transaction_desc='Product Purchase',
    )
    values.update(kwargs)
    return Transaction.objects.create(**values)


@override_settings(**MPESA_TEST_SETTINGS)
class InitiatePaymentTestCase(TestCase):

    url = '/payment/initiate'

    def post(self, data):
        return self.client.post(self.url, data=json.dumps(data), content_type='application/json')

    @mock.patch('payments.services.mpesa.requests.post')
    @mock.patch('payments.services.mpesa.requests.get')
    def test_success_creates_pending_transaction(self, mock_get, mock_post):
        mock_get.return_value = token_response()
        mock_post.return_value = stk_accepted_response('ws_CO_abc')

        response = self.post({
            'phoneNumber': '0712345678',
            'amount': 100.5,
            'accountReference': 'ORDER123',
            'transactionDesc': 'Product Purchase',
        })

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertEqual(data['checkoutRequestId'], 'ws_CO_abc')
        self.assertEqual(data['message'], 'Success. Request accepted for processing')

        txn = Transaction.objects.get(pk=data['transactionId'])
        self.assertEqual(txn.status, Transaction.Status.PENDING)
        self.assertEqual(txn.merchant_request_id, '29115-34620561-1')
        self.assertEqual(txn.checkout_request_id, 'ws_CO_abc')
        self.assertEqual(txn.phone_number, '0712345678')
        self.assertEqual(txn.amount, Decimal('100.50'))
        self.assertEqual(txn.payment_mode, 'stk_push')
        self.assertEqual(mock_post.call_args.kwargs['json']['Amount'], 100)

    @mock.patch('payments.services.mpesa.requests.post')
    @mock.patch('payments.services.mpesa.requests.get')
    def test_description_defaults(self, mock_get, mock_post):
        mock_get.return_value = token_response()
        mock_post.return_value = stk_accepted_response()

        response = self.post({'phoneNumber': '0712345678', 'amount': 10, 'accountReference': 'ORDER1'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Transaction.objects.get().transaction_desc, 'Payment')

    def test_missing_fields(self):
        for data in (
            {'amount': 10, 'accountReference': 'ORDER1'},
            {'phoneNumber': '0712345678', 'accountReference': 'ORDER1'},
            {'phoneNumber': '0712345678', 'amount': 10},
        ):
            response = self.post(data)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()['error'], 'Missing required fields')
        self.assertFalse(Transaction.objects.exists())

    def test_invalid_amount(self):
        response = self.post({'phoneNumber': '0712345678', 'amount': 'ten', 'accountReference': 'ORDER1'})
        self.assertEqual(response.status_code, 400)
        response = self.post({'phoneNumber': '0712345678', 'amount': -5, 'accountReference': 'ORDER1'})
        self.assertEqual(response.status_code, 400)

    @mock.patch('payments.services.mpesa.requests.post')
    @mock.patch('payments.services.mpesa.requests.get')
    def test_oversized_input_rejected_before_push(self, mock_get, mock_post):
        for data in (
            {'phoneNumber': 'Tel: +254 712 345 678 (mobile)', 'amount': 10, 'accountReference': 'ORDER1'},
            {'phoneNumber': '0712345678', 'amount': 10, 'accountReference': 'R' * 65},
            {'phoneNumber': '0712345678', 'amount': 10, 'accountReference': 'ORDER1',
             'transactionDesc': 'D' * 129},
            {'phoneNumber': '0712345678', 'amount': 123456789012345, 'accountReference': 'ORDER1'},
            {'phoneNumber': '0712345678', 'amount': '1e40', 'accountReference': 'ORDER1'},
        ):
            response = self.post(data)
            self.assertEqual(response.status_code, 400, data)
            self.assertIn('error', response.json())

        mock_get.assert_not_called()
        mock_post.assert_not_called()
        self.assertFalse(Transaction.objects.exists())

    @mock.patch('payments.services.mpesa.requests.post')
    @mock.patch('payments.services.mpesa.requests.get')
    def test_amount_rounded_to_cents(self, mock_get, mock_post):
        mock_get.return_value = token_response()
        mock_post.return_value = stk_accepted_response()

        response = self.post({'phoneNumber': '0712345678', 'amount': 99.999, 'accountReference': 'ORDER1'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Transaction.objects.get().amount, Decimal('100.00'))

    def test_invalid_json(self):
        response = self.client.post(self.url, data='{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Invalid JSON body')

    @mock.patch('payments.services.mpesa.requests.post')
    @mock.patch('payments.services.mpesa.requests.get')
    def test_provider_error_creates_nothing(self, mock_get, mock_post):
        mock_get.return_value = token_response()
        mock_post.return_value = fake_response(400, {'errorMessage': 'Bad Request - Invalid Amount'})

        response = self.post({'phoneNumber': '0712345678', 'amount': 10, 'accountReference': 'ORDER1'})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()['error'], 'M-Pesa API Error: Bad Request - Invalid Amount')
        self.assertFalse(Transaction.objects.exists())

    @mock.patch('payments.services.mpesa.requests.get')
    def test_token_error(self, mock_get):
        mock_get.return_value = fake_response(401, {'error': 'invalid_client'})

        response = self.post({'phoneNumber': '0712345678', 'amount': 10, 'accountReference': 'ORDER1'})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()['error'], 'Failed to get access token')
        self.assertFalse(Transaction.objects.exists())

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)


class PaymentCallbackTestCase(TestCase):

    url = '/payment/confirm'

    def setUp(self):
        self.txn = make_transaction('ws_CO_1')

    def post(self, payload):
        return self.client.post(self.url, data=json.dumps(payload), content_type='application/json')

    def test_success(self):
        response = self.post(stk_callback_payload('ws_CO_1', result_code=0, receipt='QAI2345'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': True})
        self.txn.refresh_from_db()
        self.assertEqual(self.txn.status, Transaction.Status.SUCCESS)
        self.assertEqual(self.txn.result_code, 0)
        self.assertEqual(self.txn.result_desc, 'The service request is processed successfully.')
        self.assertEqual(self.txn.mpesa_receipt_number, 'QAI2345')
        self.assertEqual(
            timezone.localtime(self.txn.transaction_date).replace(tzinfo=None),
            datetime(2024, 1, 15, 10, 30, 45),
        )
        self.assertEqual(self.txn.raw_callback['Body']['stkCallback']['CheckoutRequestID'], 'ws_CO_1')

    def test_failure(self):
        response = self.post(stk_callback_payload('ws_CO_1', result_code=1032))

        self.assertEqual(response.status_code, 200)
        self.txn.refresh_from_db()
        self.assertEqual(self.txn.status, Transaction.Status.FAILED)
        self.assertEqual(self.txn.result_code, 1032)
        self.assertEqual(self.txn.result_desc, 'Request cancelled by user')
        self.assertIsNone(self.txn.mpesa_receipt_number)
        self.assertIsNone(self.txn.transaction_date)

    def test_missing_metadata_items_are_null(self):
        response = self.post(stk_callback_payload('ws_CO_1', receipt=None, transaction_date=None))

        self.assertEqual(response.status_code, 200)
        self.txn.refresh_from_db()
        self.assertEqual(self.txn.status, Transaction.Status.SUCCESS)
        self.assertIsNone(self.txn.mpesa_receipt_number)
        self.assertIsNone(self.txn.transaction_date)

    def test_duplicate_callback_is_idempotent(self):
        payload = stk_callback_payload('ws_CO_1', receipt='QAI2345')
        self.post(payload)
        self.txn.refresh_from_db()
        first = (self.txn.status, self.txn.result_code, self.txn.mpesa_receipt_number, self.txn.transaction_date)

        response = self.post(payload)

        self.assertEqual(response.status_code, 200)
        self.txn.refresh_from_db()
        self.assertEqual(
            (self.txn.status, self.txn.result_code, self.txn.mpesa_receipt_number, self.txn.transaction_date),
            first,
        )
        self.assertEqual(Transaction.objects.count(), 1)

    def test_unknown_checkout_request_id(self):
        response = self.post(stk_callback_payload('ws_CO_unknown'))

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'success': False})
        self.txn.refresh_from_db()
        self.assertEqual(self.txn.status, Transaction.Status.PENDING)

    def test_malformed_body(self):
        response = self.client.post(self.url, data='garbage', content_type='application/json')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'success': False})

        response = self.post({'Body': {}})
        self.assertEqual(response.status_code, 500)


class PaymentStatusTestCase(TestCase):

    url = '/payment/status'

    def test_returns_transaction(self):
        txn = make_transaction(status=Transaction.Status.SUCCESS, mpesa_receipt_number='QAI2345')

        response = self.client.get(self.url, {'id': str(txn.id)})

        self.assertEqual(response.status_code, 200)
        data = response.json()['transaction']
        self.assertEqual(data['id'], str(txn.id))
        self.assertEqual(data['status'], 'success')
        self.assertEqual(data['mpesaReceiptNumber'], 'QAI2345')
        self.assertEqual(data['checkoutRequestId'], txn.checkout_request_id)

    def test_missing_id(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Transaction ID required')

    def test_not_found(self):
        response = self.client.get(self.url, {'id': str(uuid.uuid4())})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error'], 'Transaction not found')

    def test_malformed_id_is_not_found(self):
        response = self.client.get(self.url, {'id': 'not-a-uuid'})
        self.assertEqual(response.status_code, 404)


@override_settings(**MPESA_TEST_SETTINGS)
class QueryPaymentStatusTestCase(TestCase):

    url = '/payment/query'

    @mock.patch('payments.services.mpesa.requests.post')
    @mock.patch('payments.services.mpesa.requests.get')
    def test_query_does_not_mutate(self, mock_get, mock_post):
        txn = make_transaction('ws_CO_q')
        mock_get.return_value = token_response()
        mock_post.return_value = fake_response(200, {
            'ResponseCode': '0',
            'CheckoutRequestID': 'ws_CO_q',
            'ResultCode': '0',
            'ResultDesc': 'The service request is processed successfully.',
        })

        response = self.client.get(self.url, {'id': str(txn.id)})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['resultCode'], '0')
        self.assertEqual(data['checkoutRequestId'], 'ws_CO_q')
        self.assertEqual(data['status'], 'pending')
        self.assertEqual(mock_post.call_args.kwargs['json']['CheckoutRequestID'], 'ws_CO_q')
        txn.refresh_from_db()
        self.assertEqual(txn.status, Transaction.Status.PENDING)

    @mock.patch('payments.services.mpesa.requests.get')
    def test_provider_failure(self, mock_get):
        txn = make_transaction('ws_CO_q')
        mock_get.return_value = fake_response(500, text='down')

        response = self.client.get(self.url, {'id': str(txn.id)})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()['error'], 'Failed to get access token')

    def test_missing_and_unknown_id(self):
        self.assertEqual(self.client.get(self.url).status_code, 400)
        self.assertEqual(self.client.get(self.url, {'id': str(uuid.uuid4())}).status_code, 404)

    def test_missing_checkout_request_id(self):
        txn = make_transaction('')
        response = self.client.get(self.url, {'id': str(txn.id)})
        self.assertEqual(response.status_code, 400)


class IndexTestCase(TestCase):

    def test_lists_endpoints(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertIn('mpesa_initiate', response.json()['endpoints'])
