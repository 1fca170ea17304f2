from django.urls import path
from .views import product_purchase_list_create, product_purchase_detail, product_purchase_consume

urlpatterns = [
    path('product-purchases/', product_purchase_list_create, name='product-purchase-list-create'),
    path('product-purchases/<int:pk>/', product_purchase_detail, name='product-purchase-detail'),
    path('product-purchases/<int:pk>/consume/', product_purchase_consume, name='product-purchase-consume'),
]
