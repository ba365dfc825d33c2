from django.contrib import admin
from django.urls import path, include
from django.shortcuts import redirect

urlpatterns = [
    # Redirect root URL to Django admin
    path("", lambda request: redirect("admin:index")),

    path("admin/", admin.site.urls),  # Admin Panel
    path("api/", include("fees.urls")),  # API routes
]
