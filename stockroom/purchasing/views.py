import logging

from django.core.paginator import Paginator
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from stockroom.core.exceptions import InsufficientStock
from stockroom.core.utils import create_audit_log, get_request_user
from .filters import ProductPurchaseFilter
from .models import ProductPurchase
from .serializers import ConsumeSerializer, ProductPurchaseSerializer

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 15


def _positive_int(value, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def product_purchase_list_create(request):
    """List received stock lines or record a new one"""
    if request.method == 'GET':
        queryset = ProductPurchase.objects.select_related('product', 'supplier')
        filterset = ProductPurchaseFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

        page = _positive_int(request.query_params.get('page'), 1)
        limit = _positive_int(request.query_params.get('limit'), DEFAULT_PAGE_SIZE)
        paginator = Paginator(filterset.qs, limit)
        page_obj = paginator.get_page(page)

        serializer = ProductPurchaseSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })

    serializer = ProductPurchaseSerializer(data=request.data)
    if not serializer.is_valid():
        logger.debug(f"Product purchase create rejected: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = get_request_user(request)
    extra = {'created_by': user, 'updated_by': user} if user else {}
    line = serializer.save(**extra)
    logger.info(f"Recorded product purchase {line.id} for product {line.product_id} ({line.received_quantity} received)")
    create_audit_log(
        request=request,
        action='create',
        model_name='ProductPurchase',
        object_id=line.id,
        object_name=line.batch_number,
        changes={'received_quantity': str(line.received_quantity)},
    )
    return Response(ProductPurchaseSerializer(line).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([AllowAny])
def product_purchase_detail(request, pk):
    """Retrieve or update a received stock line"""
    line = get_object_or_404(ProductPurchase.objects.select_related('product', 'supplier'), pk=pk)

    if request.method == 'GET':
        return Response(ProductPurchaseSerializer(line).data)

    serializer = ProductPurchaseSerializer(line, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        logger.debug(f"Product purchase {pk} update rejected: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = get_request_user(request)
    line = serializer.save(**({'updated_by': user} if user else {}))
    logger.info(f"Updated product purchase {line.id}")
    create_audit_log(
        request=request,
        action='update',
        model_name='ProductPurchase',
        object_id=line.id,
        object_name=line.batch_number,
        changes={key: str(value) for key, value in serializer.validated_data.items()},
    )
    return Response(ProductPurchaseSerializer(line).data)


@api_view(['POST'])
@permission_classes([AllowAny])
def product_purchase_consume(request, pk):
    """Take stock out of a received line"""
    line = get_object_or_404(ProductPurchase, pk=pk)
    serializer = ConsumeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    quantity = serializer.validated_data['quantity']
    try:
        remaining = line.consume(quantity, user=get_request_user(request))
    except InsufficientStock as e:
        logger.warning(f"Product purchase {pk}: {str(e)}")
        return Response({'quantity': [str(e)]}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Consumed {quantity} from product purchase {pk}, {remaining} left")
    create_audit_log(
        request=request,
        action='stock_consume',
        model_name='ProductPurchase',
        object_id=pk,
        object_name=line.batch_number,
        changes={'quantity': str(quantity), 'available_quantity': str(remaining)},
    )
    return Response(ProductPurchaseSerializer(line).data)
