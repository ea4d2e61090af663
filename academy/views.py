"""
Academy Views — course catalog, batch scheduling and seat booking.
"""

from django.conf import settings
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from academy.exceptions import (
    CapacityError,
    CapacityExceededError,
    CapacityUnderflowError,
    DuplicateEnrollmentError,
    EnrollmentError,
    ForbiddenError,
    InvalidStatusError,
    NotFoundError,
    StoreUnavailable,
)
from academy.filters import BatchFilter, EnrollmentFilter
from academy.models import Batch, Course, Enrollment
from academy.permissions import IsOwnerOrAdmin
from academy.serializers import (
    BatchSerializer,
    CancelAckSerializer,
    CourseSerializer,
    EnrollmentCreateSerializer,
    EnrollmentSerializer,
    EnrollmentStatusSerializer,
    ErrorSerializer,
)
from academy.services.batch_service import (
    available_batches, create_batch, delete_batch, update_batch,
)
from academy.services.enrollment_service import (
    cancel_enrollment,
    create_enrollment,
    list_enrollments_for_batch,
    list_enrollments_for_user,
    set_enrollment_status,
)
from users.permissions import (
    IsAdminOrSuperAdmin, IsInstructorOrAdmin, IsInstructorOrAdminOrReadOnly,
)

UUID_REGEX = r'[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    CapacityExceededError: status.HTTP_409_CONFLICT,
    DuplicateEnrollmentError: status.HTTP_409_CONFLICT,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStatusError: status.HTTP_400_BAD_REQUEST,
    CapacityError: status.HTTP_409_CONFLICT,
    CapacityUnderflowError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(exc):
    """Translate a booking error into ``{'detail', 'code'}`` with its HTTP status."""
    if isinstance(exc, StoreUnavailable):
        retry_after = getattr(settings, 'STORE_RETRY_AFTER_SECONDS', 2)
        return Response(
            {'detail': str(exc), 'code': exc.code},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
            headers={'Retry-After': str(retry_after)},
        )
    return Response(
        {'detail': str(exc), 'code': exc.code},
        status=ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST),
    )


# ─── Course ──────────────────────────────────────────────────────────────────

@extend_schema_view(
    list=extend_schema(summary='List courses'),
    retrieve=extend_schema(summary='Retrieve a course'),
    destroy=extend_schema(summary='Delete a course with its batches and enrollments'),
)
class CourseViewSet(viewsets.ModelViewSet):
    serializer_class = CourseSerializer
    permission_classes = [IsInstructorOrAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ['is_active', 'instructor']
    ordering_fields = ['title', 'price', 'created_at']
    ordering = ['-created_at']

    def get_queryset(self):
        qs = Course.objects.select_related('instructor')
        # Students and anonymous visitors only see the active catalog
        user = self.request.user
        if not (user.is_authenticated and user.can_manage_batches):
            qs = qs.filter(is_active=True)
        return qs

    def get_permissions(self):
        if self.action == 'destroy':
            return [IsAdminOrSuperAdmin()]
        return super().get_permissions()

    def perform_create(self, serializer):
        if 'instructor' in serializer.validated_data:
            serializer.save()
        else:
            serializer.save(instructor=self.request.user)


# ─── Batch ───────────────────────────────────────────────────────────────────

@extend_schema_view(
    list=extend_schema(summary='List batches (filter by course)'),
    retrieve=extend_schema(summary='Retrieve a batch'),
    create=extend_schema(summary='Schedule a batch'),
    update=extend_schema(summary='Reschedule or resize a batch',
                         responses={200: BatchSerializer, 409: ErrorSerializer}),
    partial_update=extend_schema(summary='Reschedule or resize a batch',
                                 responses={200: BatchSerializer, 409: ErrorSerializer}),
    destroy=extend_schema(summary='Delete a batch with its enrollments'),
)
class BatchViewSet(viewsets.ModelViewSet):
    """
    Batches API.

    ``max_seats`` edits that would drop below the seats already taken are
    rejected with 409.
    """
    serializer_class = BatchSerializer
    permission_classes = [IsInstructorOrAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = BatchFilter
    ordering_fields = ['start_date', 'created_at']
    ordering = ['start_date']
    lookup_value_regex = UUID_REGEX

    def get_queryset(self):
        return Batch.objects.select_related('course')

    def get_permissions(self):
        if self.action == 'destroy':
            return [IsAdminOrSuperAdmin()]
        return super().get_permissions()

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = create_batch(data['course'], data['start_date'], data['max_seats'])

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        batch = self.get_object()
        ser = self.get_serializer(batch, data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)

        try:
            batch = update_batch(batch, **ser.validated_data)
        except (CapacityError, NotFoundError) as e:
            return error_response(e)

        return Response(BatchSerializer(batch).data)

    def destroy(self, request, *args, **kwargs):
        batch = self.get_object()
        try:
            delete_batch(batch)
        except NotFoundError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(summary='Upcoming batches with free seats', responses=BatchSerializer(many=True))
    @action(detail=False, methods=['get'], permission_classes=[AllowAny])
    def available(self, request):
        qs = self.filter_queryset(available_batches())
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(BatchSerializer(page, many=True).data)
        return Response(BatchSerializer(qs, many=True).data)


# ─── Enrollment ──────────────────────────────────────────────────────────────

@extend_schema_view(
    list=extend_schema(summary="List the current user's enrollments"),
    retrieve=extend_schema(summary='Retrieve an enrollment (owner or admin)'),
)
class EnrollmentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Seat booking API.

    POST   /api/academy/enrollments/                   book a seat
    GET    /api/academy/enrollments/                   my enrollments
    GET    /api/academy/enrollments/batch/<batch_id>/  batch roster
    PATCH  /api/academy/enrollments/<id>/status/       set status
    DELETE /api/academy/enrollments/<id>/              cancel
    """
    serializer_class = EnrollmentSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrAdmin]
    filter_backends = [DjangoFilterBackend]
    filterset_class = EnrollmentFilter
    lookup_value_regex = UUID_REGEX

    def get_queryset(self):
        if self.action == 'list':
            return list_enrollments_for_user(self.request.user.pk)
        return Enrollment.objects.select_related('batch__course', 'user')

    @extend_schema(
        summary='Book a seat in a batch',
        request=EnrollmentCreateSerializer,
        responses={
            201: EnrollmentSerializer,
            404: ErrorSerializer,
            409: ErrorSerializer,
            503: OpenApiResponse(ErrorSerializer, description='Retry with backoff'),
        },
    )
    def create(self, request, *args, **kwargs):
        ser = EnrollmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            enrollment = create_enrollment(request.user.pk, ser.validated_data['batchId'])
        except (EnrollmentError, StoreUnavailable) as e:
            return error_response(e)

        return Response(
            EnrollmentSerializer(enrollment).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        summary='Cancel an enrollment and release its seat',
        responses={200: CancelAckSerializer, 403: ErrorSerializer, 404: ErrorSerializer},
    )
    def destroy(self, request, pk=None):
        try:
            ack = cancel_enrollment(pk, request.user.pk, request.user.role)
        except (EnrollmentError, StoreUnavailable) as e:
            return error_response(e)
        return Response(ack, status=status.HTTP_200_OK)

    @extend_schema(
        summary='Set enrollment status (PENDING or CONFIRMED)',
        request=EnrollmentStatusSerializer,
        responses={200: EnrollmentSerializer, 400: ErrorSerializer, 404: ErrorSerializer},
    )
    @action(detail=True, methods=['patch'], url_path='status',
            permission_classes=[IsInstructorOrAdmin])
    def set_status(self, request, pk=None):
        ser = EnrollmentStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            enrollment = set_enrollment_status(pk, ser.validated_data['status'])
        except (EnrollmentError, StoreUnavailable) as e:
            return error_response(e)

        return Response(EnrollmentSerializer(enrollment).data)

    @extend_schema(
        summary='List enrollments in a batch',
        responses={200: EnrollmentSerializer(many=True), 404: ErrorSerializer},
    )
    @action(detail=False, methods=['get'], url_path=r'batch/(?P<batch_id>' + UUID_REGEX + ')',
            permission_classes=[IsInstructorOrAdmin])
    def batch(self, request, batch_id=None):
        try:
            qs = list_enrollments_for_batch(batch_id)
        except (EnrollmentError, StoreUnavailable) as e:
            return error_response(e)

        qs = self.filter_queryset(qs)
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(EnrollmentSerializer(page, many=True).data)
        return Response(EnrollmentSerializer(qs, many=True).data)
