import base64
import re
from datetime import datetime

from django.utils import timezone

TIMESTAMP_FORMAT = '%Y%m%d%H%M%S'


def normalize_phone_number(phone_number):
    """
    Bring a Kenyan phone number into the 2547XXXXXXXX form Daraja expects.

    0712345678, +254712345678, 254712345678 and 712345678 all become
    254712345678. Anything else is passed through as digits only.
    """
    digits = re.sub(r'\D', '', str(phone_number))
    if digits.startswith('0'):
        return '254' + digits[1:]
    if digits.startswith('254'):
        return digits
    if len(digits) == 9:
        return '254' + digits
    return digits


def generate_timestamp(now=None):
    now = now or timezone.localtime()
    return now.strftime(TIMESTAMP_FORMAT)


def generate_password(shortcode, passkey, timestamp):
    raw = f"{shortcode}{passkey}{timestamp}".encode('utf-8')
    return base64.b64encode(raw).decode('utf-8')


def parse_transaction_date(value):
    """Parse Daraja's 14 digit ``YYYYMMDDHHmmss`` value into a naive datetime."""
    s = str(value)
    return datetime(
        int(s[0:4]),
        int(s[4:6]),
        int(s[6:8]),
        int(s[8:10]),
        int(s[10:12]),
        int(s[12:14]),
    )


def callback_metadata_value(items, name):
    """Return the ``Value`` of the metadata item called ``name``, or None."""
    for item in items or []:
        if item.get('Name') == name:
            return item.get('Value')
    return None
