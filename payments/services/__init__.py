from functools import lru_cache

from .mpesa import MpesaConfig, MpesaDarajaClient


@lru_cache(maxsize=None)
def get_mpesa_client():
    """Process-wide client, built from settings on first use."""
    return MpesaDarajaClient(MpesaConfig.from_settings())
