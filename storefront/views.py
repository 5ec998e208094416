from django.http import JsonResponse

def index(request):
    return JsonResponse({
        "message": "Storefront M-Pesa Payments API",
        "endpoints": {
            "admin": "/admin/",
            "mpesa_initiate": "/payment/initiate",
            "mpesa_callback": "/payment/confirm",
            "payment_status": "/payment/status?id=<transaction_id>",
            "payment_query": "/payment/query?id=<transaction_id>",
            "manual_payment": "/manual-payment",
            "diagnostics": "/diagnostics",
        }
    })
