import logging

from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404, redirect
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, renderer_classes
from rest_framework.permissions import AllowAny
from rest_framework.renderers import JSONRenderer, TemplateHTMLRenderer
from rest_framework.response import Response

from stockroom.core.utils import create_audit_log
from stockroom.core.whitelist import first_errors
from .models import Category
from .pages import CategoryFormPage, CategoryListPage, Create, Edit
from .serializers import CategorySerializer

logger = logging.getLogger(__name__)

INDEX_TEMPLATE = 'catalog/category_index.html'
FORM_TEMPLATE = 'catalog/category_form.html'

PAGE_RENDERERS = [TemplateHTMLRenderer, JSONRenderer]
NAME_TAKEN = {'name': 'Name already taken'}


def wants_html(request):
    return request.accepted_renderer.format == 'html'


def render_form(request, mode, errors=None, submitted=None, status_code=status.HTTP_200_OK):
    """Render the category form as HTML, or its JSON equivalent"""
    if wants_html(request):
        page = CategoryFormPage(mode, errors=errors)
        if submitted is not None:
            page.data.set_name(submitted.get('name', ''))
            page.data.set_description(submitted.get('description') or '')
        return Response({'page': page}, status=status_code, template_name=FORM_TEMPLATE)

    if errors:
        return Response({'errors': errors}, status=status_code)
    category = mode.category if isinstance(mode, Edit) else None
    return Response({'category': CategorySerializer(category).data if category else None}, status=status_code)


def category_changes(category):
    return {'name': category.name, 'description': category.description}


def save_category(serializer):
    """Save, reporting a name that another request took after validation as None"""
    try:
        with transaction.atomic():
            return serializer.save()
    except IntegrityError:
        return None


@api_view(['GET'])
@renderer_classes(PAGE_RENDERERS)
@permission_classes([AllowAny])
def category_index(request):
    """List all categories in storage order"""
    categories = Category.objects.all()
    if wants_html(request):
        return Response({'page': CategoryListPage(categories)}, template_name=INDEX_TEMPLATE)
    return Response({'categories': CategorySerializer(categories, many=True).data})


@api_view(['GET'])
@renderer_classes(PAGE_RENDERERS)
@permission_classes([AllowAny])
def category_create(request):
    """Empty category form"""
    return render_form(request, Create())


@api_view(['POST'])
@renderer_classes(PAGE_RENDERERS)
@permission_classes([AllowAny])
def category_store(request):
    """Create a category and go back to the list"""
    serializer = CategorySerializer(data=request.data)
    if not serializer.is_valid():
        errors = first_errors(serializer.errors)
        logger.debug(f"Category create rejected: {errors}")
        return render_form(request, Create(), errors=errors, submitted=request.data,
                           status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)

    category = save_category(serializer)
    if category is None:
        logger.debug(f"Category create lost a race for name {request.data.get('name')!r}")
        return render_form(request, Create(), errors=NAME_TAKEN, submitted=request.data,
                           status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)

    logger.info(f"Created category {category.id} ({category.name})")
    create_audit_log(
        request=request,
        action='create',
        model_name='Category',
        object_id=category.id,
        object_name=category.name,
        changes=category_changes(category),
    )
    return redirect('category-index')


@api_view(['GET'])
@renderer_classes(PAGE_RENDERERS)
@permission_classes([AllowAny])
def category_edit(request, pk):
    """Category form pre-filled from an existing record"""
    category = get_object_or_404(Category, pk=pk)
    return render_form(request, Edit(category))


@api_view(['PUT', 'PATCH', 'POST'])
@renderer_classes(PAGE_RENDERERS)
@permission_classes([AllowAny])
def category_update(request, pk):
    """Update a category; HTML forms arrive as POST with _method=PUT"""
    category = get_object_or_404(Category, pk=pk)
    before = category_changes(category)

    serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        errors = first_errors(serializer.errors)
        logger.debug(f"Category {pk} update rejected: {errors}")
        return render_form(request, Edit(category), errors=errors, submitted=request.data,
                           status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)

    saved = save_category(serializer)
    if saved is None:
        logger.debug(f"Category {pk} update lost a race for name {request.data.get('name')!r}")
        return render_form(request, Edit(category), errors=NAME_TAKEN, submitted=request.data,
                           status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)

    category = saved
    logger.info(f"Updated category {category.id} ({category.name})")
    create_audit_log(
        request=request,
        action='update',
        model_name='Category',
        object_id=category.id,
        object_name=category.name,
        changes={'before': before, 'after': category_changes(category)},
    )
    return redirect('category-index')


@api_view(['DELETE', 'POST'])
@renderer_classes(PAGE_RENDERERS)
@permission_classes([AllowAny])
def category_delete(request, pk):
    """Delete a category; a record that is already gone counts as deleted"""
    category = Category.objects.filter(pk=pk).first()
    if category is None:
        logger.info(f"Category {pk} already deleted")
        return redirect('category-index')

    name = category.name
    category.delete()
    logger.info(f"Deleted category {pk} ({name})")
    create_audit_log(
        request=request,
        action='delete',
        model_name='Category',
        object_id=pk,
        object_name=name,
    )
    return redirect('category-index')
