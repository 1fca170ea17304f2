from django.urls import path
from .views import (
    category_index, category_create, category_store,
    category_edit, category_update, category_delete,
)

urlpatterns = [
    # Category pages
    path('categories', category_index, name='category-index'),
    path('categories/create', category_create, name='category-create'),
    path('categories/store', category_store, name='category-store'),
    path('categories/edit/<int:pk>', category_edit, name='category-edit'),
    path('categories/update/<int:pk>', category_update, name='category-update'),
    path('categories/delete/<int:pk>', category_delete, name='category-delete'),
]
