"""
Credential self-check for the Daraja integration.

Looks for the usual copy/paste mistakes in the configured credentials and
then tries to fetch an OAuth token with them.
"""
import logging
import re

import requests
from requests.auth import HTTPBasicAuth

logger = logging.getLogger(__name__)

TOKEN_TEST_TIMEOUT = 10
PASSKEY_LENGTH = 64
MIN_CREDENTIAL_LENGTH = 20


def _masked(value, keep):
    return value[:keep] + '...'


def check_environment(config):
    key, secret, passkey = config.consumer_key, config.consumer_secret, config.passkey
    return {
        'hasConsumerKey': bool(key),
        'hasConsumerSecret': bool(secret),
        'hasPasskey': bool(passkey),
        'consumerKeyLength': len(key),
        'consumerSecretLength': len(secret),
        'passkeyLength': len(passkey),
        'consumerKeyFirstChars': _masked(key, 8),
        'consumerSecretFirstChars': _masked(secret, 8),
        'passkeyFirstChars': _masked(passkey, 15),
        'shortCode': config.shortcode,
        'environment': config.environment,
        'baseUrl': config.base_url,
        'issues': {
            'consumerKeyHasSpaces': bool(re.search(r'\s', key)),
            'consumerSecretHasSpaces': bool(re.search(r'\s', secret)),
            'passkeyHasSpaces': bool(re.search(r'\s', passkey)),
            'consumerKeyHasQuotes': bool(re.search(r'["\']', key)),
            'consumerSecretHasQuotes': bool(re.search(r'["\']', secret)),
            'consumerKeyTooShort': len(key) < MIN_CREDENTIAL_LENGTH,
            'consumerSecretTooShort': len(secret) < MIN_CREDENTIAL_LENGTH,
            'passkeyWrongLength': len(passkey) != PASSKEY_LENGTH,
        },
    }


def check_token(config, session=requests):
    try:
        resp = session.get(
            f"{config.base_url}/oauth/v1/generate?grant_type=client_credentials",
            auth=HTTPBasicAuth(config.consumer_key, config.consumer_secret),
            headers={"Content-Type": "application/json"},
            timeout=TOKEN_TEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error("Diagnostics token test failed: %s", e)
        return {'success': False, 'status': None, 'error': str(e)}

    try:
        data = resp.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    if resp.status_code == 200 and data.get('access_token'):
        token = data['access_token']
        return {
            'success': True,
            'status': resp.status_code,
            'hasAccessToken': True,
            'tokenPreview': _masked(token, 20),
            'expiresIn': data.get('expires_in'),
        }

    logger.error("Diagnostics token test rejected: status=%s, body=%s", resp.status_code, resp.text)
    return {
        'success': False,
        'status': resp.status_code,
        'error': data.get('error') or data.get('errorMessage') or resp.reason,
        'errorDescription': data.get('error_description'),
        'fullError': data or resp.text,
    }


def diagnose(env_check, token_test):
    issues = env_check['issues']
    lines = []
    if not env_check['hasConsumerKey']:
        lines.append('CRITICAL: MPESA_CONSUMER_KEY is not set')
    if not env_check['hasConsumerSecret']:
        lines.append('CRITICAL: MPESA_CONSUMER_SECRET is not set')
    if not env_check['hasPasskey']:
        lines.append('CRITICAL: MPESA_PASSKEY is not set')
    if issues['consumerKeyHasSpaces']:
        lines.append('ERROR: Consumer Key contains spaces - remove all whitespace')
    if issues['consumerSecretHasSpaces']:
        lines.append('ERROR: Consumer Secret contains spaces - remove all whitespace')
    if issues['passkeyHasSpaces']:
        lines.append('ERROR: Passkey contains spaces - remove all whitespace')
    if issues['consumerKeyHasQuotes']:
        lines.append('ERROR: Consumer Key contains quotes - remove quotes from .env')
    if issues['consumerSecretHasQuotes']:
        lines.append('ERROR: Consumer Secret contains quotes - remove quotes from .env')
    if issues['consumerKeyTooShort']:
        lines.append("WARNING: Consumer Key seems too short - verify it's complete")
    if issues['consumerSecretTooShort']:
        lines.append("WARNING: Consumer Secret seems too short - verify it's complete")
    if issues['passkeyWrongLength']:
        lines.append(f'WARNING: Passkey should be exactly {PASSKEY_LENGTH} characters for sandbox')

    if token_test['success']:
        lines.append('OK: Authentication works, the consumer key and secret are correct.')
    else:
        lines.extend([
            'FAILED: Cannot get access token with these credentials',
            'ACTION REQUIRED:',
            '   1. Go to https://developer.safaricom.co.ke/MyApps',
            '   2. Select your app (or create a new one)',
            '   3. Copy the Consumer Key and Consumer Secret',
            '   4. Paste them into .env without quotes or spaces',
            '   5. Restart the server',
        ])
    return lines


def run_diagnostics(config, session=requests):
    env_check = check_environment(config)
    token_test = check_token(config, session=session)
    return {
        'step1_env_check': env_check,
        'step2_token_test': token_test,
        'step3_diagnosis': diagnose(env_check, token_test),
    }
