from django.urls import path
from . import views

urlpatterns = [
    path('payment/initiate', views.initiate_payment, name='payment_initiate'),
    path('payment/confirm', views.payment_callback, name='payment_confirm'),
    path('payment/status', views.payment_status, name='payment_status'),
    path('payment/query', views.query_payment_status, name='payment_query'),
    path('manual-payment', views.manual_payment, name='manual_payment'),
    path('diagnostics', views.diagnostics, name='diagnostics'),
]
