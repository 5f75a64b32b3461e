# services/urls.py
from django.urls import path
from .views import RegistrationListView

urlpatterns = [
    path("registrations/", RegistrationListView.as_view(), name="registration-list"),
]
