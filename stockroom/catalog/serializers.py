from rest_framework import serializers
from rest_framework.validators import UniqueValidator

from stockroom.core.whitelist import WhitelistedModelSerializer
from .models import Category


class CategorySerializer(WhitelistedModelSerializer):
    name = serializers.CharField(
        max_length=200,
        validators=[UniqueValidator(queryset=Category.objects.all(), message='Name already taken')],
    )
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_description(self, value):
        """Blank descriptions are stored as null"""
        return value or None

