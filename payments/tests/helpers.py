from unittest import mock

MPESA_TEST_SETTINGS = dict(
    MPESA_ENVIRONMENT='sandbox',
    MPESA_CONSUMER_KEY='test-consumer-key-0123456789',
    MPESA_CONSUMER_SECRET='test-consumer-secret-0123456789',
    MPESA_PASSKEY='p' * 64,
    MPESA_BUSINESS_SHORT_CODE='174379',
    MPESA_CALLBACK_URL='https://shop.example.com/payment/confirm',
    MPESA_TIMEOUT=30,
)


def fake_response(status_code=200, json_data=None, text='', reason='OK'):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.reason = reason
    resp.text = text
    if json_data is None:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = json_data
    return resp


def token_response(token='test-access-token'):
    return fake_response(json_data={'access_token': token, 'expires_in': '3599'})


def stk_accepted_response(checkout_request_id='ws_CO_15012024103045123456'):
    return fake_response(json_data={
        'MerchantRequestID': '29115-34620561-1',
        'CheckoutRequestID': checkout_request_id,
        'ResponseCode': '0',
        'ResponseDescription': 'Success. Request accepted for processing',
        'CustomerMessage': 'Success. Request accepted for processing',
    })


def stk_callback_payload(checkout_request_id, result_code=0, receipt='QAI2345',
                         transaction_date=20240115103045, result_desc=None):
    stk = {
        'MerchantRequestID': '29115-34620561-1',
        'CheckoutRequestID': checkout_request_id,
        'ResultCode': result_code,
        'ResultDesc': result_desc or (
            'The service request is processed successfully.' if result_code == 0
            else 'Request cancelled by user'
        ),
    }
    if result_code == 0:
        items = [{'Name': 'Amount', 'Value': 100.00}]
        if receipt is not None:
            items.append({'Name': 'MpesaReceiptNumber', 'Value': receipt})
        items.append({'Name': 'Balance'})
        if transaction_date is not None:
            items.append({'Name': 'TransactionDate', 'Value': transaction_date})
        items.append({'Name': 'PhoneNumber', 'Value': 254712345678})
        stk['CallbackMetadata'] = {'Item': items}
    return {'Body': {'stkCallback': stk}}
