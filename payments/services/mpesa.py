import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

import requests
from django.conf import settings
from requests.auth import HTTPBasicAuth

from payments.exceptions import AccessTokenError, StkPushError, StkQueryError
from payments.utils import generate_password, generate_timestamp, normalize_phone_number

logger = logging.getLogger(__name__)

SANDBOX_URL = 'https://sandbox.safaricom.co.ke'
PRODUCTION_URL = 'https://api.safaricom.co.ke'

TRANSACTION_TYPE = 'CustomerPayBillOnline'


@dataclass(frozen=True)
class MpesaConfig:
    environment: str
    consumer_key: str
    consumer_secret: str
    passkey: str
    shortcode: str
    callback_url: str
    timeout: int = 30

    @property
    def base_url(self):
        return PRODUCTION_URL if self.environment == 'production' else SANDBOX_URL

    @classmethod
    def from_settings(cls):
        return cls(
            environment=getattr(settings, 'MPESA_ENVIRONMENT', 'sandbox'),
            consumer_key=getattr(settings, 'MPESA_CONSUMER_KEY', ''),
            consumer_secret=getattr(settings, 'MPESA_CONSUMER_SECRET', ''),
            passkey=getattr(settings, 'MPESA_PASSKEY', ''),
            shortcode=str(getattr(settings, 'MPESA_BUSINESS_SHORT_CODE', '')),
            callback_url=getattr(settings, 'MPESA_CALLBACK_URL', ''),
            timeout=getattr(settings, 'MPESA_TIMEOUT', 30),
        )


def _error_description(resp, default):
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        return data.get('errorMessage') or data.get('ResponseDescription') or default
    return default


class MpesaDarajaClient:
    """
    Thin client over the Daraja endpoints used for Lipa Na M-Pesa Online.

    A fresh OAuth token is fetched for every call; tokens are not cached.
    """

    def __init__(self, config, session=None):
        self.config = config
        self.session = session or requests

    def access_token(self):
        url = f"{self.config.base_url}/oauth/v1/generate?grant_type=client_credentials"
        try:
            resp = self.session.get(
                url,
                auth=HTTPBasicAuth(self.config.consumer_key, self.config.consumer_secret),
                headers={"Accept": "application/json"},
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            logger.error("Access token request failed: %s", e)
            raise AccessTokenError() from e

        if resp.status_code != 200:
            logger.error("MPESA OAuth error: status=%s, body=%s", resp.status_code, resp.text)
            raise AccessTokenError()
        try:
            data = resp.json()
        except ValueError as e:
            logger.error("MPESA OAuth returned non-JSON body: %s", resp.text)
            raise AccessTokenError() from e
        token = data.get('access_token') if isinstance(data, dict) else None
        if not token:
            logger.error("MPESA OAuth JSON missing access_token: %s", data)
            raise AccessTokenError()
        return token

    def _headers(self, token):
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def stk_push(self, phone, amount, account_reference, transaction_desc='Payment'):
        """
        Send the STK Push prompt to ``phone``.

        Returns the provider body: MerchantRequestID, CheckoutRequestID,
        ResponseCode, ResponseDescription and CustomerMessage. Raises
        StkPushError if the request is not accepted.
        """
        token = self.access_token()
        timestamp = generate_timestamp()
        password = generate_password(self.config.shortcode, self.config.passkey, timestamp)
        formatted_phone = normalize_phone_number(phone)
        whole_amount = int(Decimal(str(amount)).to_integral_value(rounding=ROUND_FLOOR))

        payload = {
            "BusinessShortCode": self.config.shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "TransactionType": TRANSACTION_TYPE,
            "Amount": whole_amount,
            "PartyA": formatted_phone,
            "PartyB": self.config.shortcode,
            "PhoneNumber": formatted_phone,
            "CallBackURL": self.config.callback_url,
            "AccountReference": account_reference,
            "TransactionDesc": transaction_desc,
        }
        logger.info("STK Push request: %s", {**payload, "Password": "[REDACTED]"})

        try:
            resp = self.session.post(
                f"{self.config.base_url}/mpesa/stkpush/v1/processrequest",
                json=payload,
                headers=self._headers(token),
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            logger.error("Failed to reach MPESA STK API: %s", e)
            raise StkPushError(str(e)) from e

        if not resp.ok:
            logger.error("STK Push error: status=%s, body=%s", resp.status_code, resp.text)
            raise StkPushError(_error_description(resp, f"HTTP {resp.status_code} {resp.reason}"))

        try:
            data = resp.json()
        except ValueError as e:
            raise StkPushError(f"Invalid response body: {resp.text}") from e

        # Daraja accepts the request with ResponseCode "0"
        if str(data.get('ResponseCode')) != '0':
            logger.error("STK Push not accepted: %s", data)
            raise StkPushError(
                data.get('errorMessage') or data.get('ResponseDescription') or "STK Push was not accepted"
            )

        logger.info("STK Push response: %s", data)
        return data

    def stk_query(self, checkout_request_id):
        token = self.access_token()
        timestamp = generate_timestamp()
        payload = {
            "BusinessShortCode": self.config.shortcode,
            "Password": generate_password(self.config.shortcode, self.config.passkey, timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        try:
            resp = self.session.post(
                f"{self.config.base_url}/mpesa/stkpushquery/v1/query",
                json=payload,
                headers=self._headers(token),
                timeout=self.config.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("STK Query error for %s: %s", checkout_request_id, e)
            raise StkQueryError() from e
