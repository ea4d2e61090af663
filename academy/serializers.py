"""
Academy Serializers — courses, batches and enrollments.

Request payloads use the ``batchId`` key the booking clients send.
"""

from rest_framework import serializers

from academy.models import Batch, Course, Enrollment
from users.serializers import UserCompactSerializer


# ─── Course ──────────────────────────────────────────────────────────────────

class CourseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = [
            'id', 'title', 'slug', 'description', 'price',
            'instructor', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
        extra_kwargs = {
            'slug': {'required': False},
            'instructor': {'required': False},
        }


class CourseSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = ['id', 'title', 'slug', 'price']


# ─── Batch ───────────────────────────────────────────────────────────────────

class BatchSerializer(serializers.ModelSerializer):
    """
    ``current_enrolled`` is owned by the booking engine and always
    read-only here.
    """
    course = serializers.PrimaryKeyRelatedField(queryset=Course.objects.all())
    course_detail = CourseSummarySerializer(source='course', read_only=True)
    max_seats = serializers.IntegerField(min_value=1)
    seats_available = serializers.IntegerField(read_only=True)

    class Meta:
        model = Batch
        fields = [
            'id', 'course', 'course_detail', 'start_date',
            'max_seats', 'current_enrolled', 'seats_available',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'current_enrolled', 'created_at', 'updated_at']


class BatchSummarySerializer(serializers.ModelSerializer):
    course = CourseSummarySerializer(read_only=True)

    class Meta:
        model = Batch
        fields = ['id', 'course', 'start_date', 'max_seats', 'current_enrolled']


# ─── Enrollment ──────────────────────────────────────────────────────────────

class EnrollmentSerializer(serializers.ModelSerializer):
    batch = BatchSummarySerializer(read_only=True)
    user = UserCompactSerializer(read_only=True)

    class Meta:
        model = Enrollment
        fields = ['id', 'user', 'batch', 'status', 'progress', 'created_at', 'updated_at']
        read_only_fields = fields


class EnrollmentCreateSerializer(serializers.Serializer):
    batchId = serializers.UUIDField()


class EnrollmentStatusSerializer(serializers.Serializer):
    """Validated against the enrollment statuses by the booking engine."""
    status = serializers.CharField(max_length=20)


class CancelAckSerializer(serializers.Serializer):
    detail = serializers.CharField()


class ErrorSerializer(serializers.Serializer):
    detail = serializers.CharField()
    code = serializers.CharField()
