class MpesaError(Exception):
    """Base class for failures talking to the M-Pesa Daraja API."""


class AccessTokenError(MpesaError):
    def __init__(self, message='Failed to get access token'):
        super().__init__(message)


class StkPushError(MpesaError):
    def __init__(self, description):
        self.description = description
        super().__init__(f"M-Pesa API Error: {description}")


class StkQueryError(MpesaError):
    def __init__(self, message='Failed to query STK status'):
        super().__init__(message)
