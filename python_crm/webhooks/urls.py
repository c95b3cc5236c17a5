"""
URL configuration for webhooks app.
"""
from django.urls import path
from webhooks.views import LeadFormWebhookView

urlpatterns = [
    path('lead-form/', LeadFormWebhookView.as_view(), name='lead-form-webhook'),
]
