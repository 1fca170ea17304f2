"""
URL configuration for the stockroom project.

Category admin pages live at the site root (``/categories...``); the JSON
API for received stock lines lives under ``/api/v1/``.
"""
from django.contrib import admin
from django.urls import path, include
from django.views.generic import RedirectView

admin.site.site_header = "Stockroom Admin Panel"
admin.site.site_title = "Stockroom Admin Portal"
admin.site.index_title = "Inventory & Purchasing"

urlpatterns = [
    path('', RedirectView.as_view(url='/categories', permanent=False)),
    path('admin/', admin.site.urls),
    path('', include('stockroom.catalog.urls')),
    path('api/v1/', include('stockroom.purchasing.urls')),
]
