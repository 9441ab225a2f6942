"""
Page/limit pagination shared by the list endpoints.

Lists answer ``{"ok": true, "data": [...], "pagination": {...}}`` where
``pagination`` carries ``total``, ``page``, ``limit`` and ``totalPages``.
"""
from __future__ import annotations

import math

from django.conf import settings
from rest_framework import serializers
from rest_framework.response import Response


class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)


def paginate(request, queryset, serialize) -> Response:
    q = PageQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page = q.validated_data.get('page') or 1
    limit = q.validated_data.get('limit') or settings.DEFAULT_PAGE_SIZE
    limit = min(limit, settings.MAX_PAGE_SIZE)

    total = queryset.count()
    offset = (page - 1) * limit
    items = [serialize(obj) for obj in queryset[offset:offset + limit]]
    return Response({
        'ok': True,
        'data': items,
        'pagination': {
            'total': total,
            'page': page,
            'limit': limit,
            'totalPages': math.ceil(total / limit) if total else 0,
        },
    })
