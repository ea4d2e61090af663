"""
Academy Tests — seat booking under capacity limits.

Covers:
1. Capacity store (reserve, release, resize)
2. Enrollment ledger (insert, uniqueness, status, remove)
3. Booking engine (create, confirm, cancel, booking scenarios)
4. Concurrent bookings against one batch
5. Store failures surfaced as retryable errors
6. REST status mapping
7. Batch management and cascade deletes
8. Seat-count audit command
"""

import threading
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib import admin
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import IntegrityError, OperationalError, connection, transaction
from django.db.models import F
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from academy.exceptions import (
    CapacityError,
    CapacityExceededError,
    CapacityUnderflowError,
    DuplicateEnrollmentError,
    ForbiddenError,
    InvalidStatusError,
    NotFoundError,
    StoreUnavailable,
)
from academy.models import Batch, Course, Enrollment, EnrollmentStatus
from academy.services import capacity_service, enrollment_service, ledger_service
from academy.services.batch_service import (
    available_batches, create_batch, delete_batch, update_batch,
)
from academy.services.enrollment_service import (
    cancel_enrollment,
    create_enrollment,
    delete_users,
    list_enrollments_for_batch,
    list_enrollments_for_user,
    set_enrollment_status,
)
from users.admin import UserAdmin
from users.models import User, UserRole

MISSING_ID = '00000000-0000-0000-0000-000000000000'


class AcademyTestBase(TestCase):
    """Shared setup: one course, one small batch, a few users."""

    def setUp(self):
        self.student_a = User.objects.create_user(
            email='alice@test.com', password='testpass123',
        )
        self.student_b = User.objects.create_user(
            email='bob@test.com', password='testpass123',
        )
        self.instructor = User.objects.create_user(
            email='teacher@test.com', password='testpass123',
            role=UserRole.INSTRUCTOR,
        )
        self.admin = User.objects.create_user(
            email='admin@test.com', password='testpass123',
            role=UserRole.ADMIN, is_staff=True,
        )
        self.course = Course.objects.create(
            title='Intro to Databases',
            description='Transactions and locking',
            price=Decimal('49.00'),
            instructor=self.instructor,
        )
        self.batch = self.make_batch(max_seats=1)

    def make_batch(self, max_seats, days=7, course=None):
        return Batch.objects.create(
            course=course or self.course,
            start_date=timezone.now() + timedelta(days=days),
            max_seats=max_seats,
        )

    def assertSeatInvariant(self, batch):
        batch.refresh_from_db()
        live = Enrollment.objects.filter(batch=batch).count()
        self.assertGreaterEqual(batch.current_enrolled, 0)
        self.assertLessEqual(batch.current_enrolled, batch.max_seats)
        self.assertEqual(batch.current_enrolled, live)


# ═════════════════════════════════════════════════════════════════════════════
# 1. CAPACITY STORE
# ═════════════════════════════════════════════════════════════════════════════

class CapacityServiceTests(AcademyTestBase):

    def test_try_reserve_until_full(self):
        batch = self.make_batch(max_seats=2)
        self.assertTrue(capacity_service.try_reserve(batch.pk))
        self.assertTrue(capacity_service.try_reserve(batch.pk))
        self.assertFalse(capacity_service.try_reserve(batch.pk))
        batch.refresh_from_db()
        self.assertEqual(batch.current_enrolled, 2)

    def test_release_decrements(self):
        capacity_service.try_reserve(self.batch.pk)
        capacity_service.release(self.batch.pk)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 0)

    def test_release_at_zero_raises(self):
        with self.assertRaises(CapacityUnderflowError):
            capacity_service.release(self.batch.pk)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 0)

    def test_release_missing_batch(self):
        with self.assertRaises(NotFoundError):
            capacity_service.release(MISSING_ID)

    def test_lock_missing_batch(self):
        with transaction.atomic(), self.assertRaises(NotFoundError):
            capacity_service.lock_batch(MISSING_ID)

    def test_set_max_seats_grow(self):
        batch = capacity_service.set_max_seats(self.batch.pk, 10)
        self.assertEqual(batch.max_seats, 10)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.max_seats, 10)

    def test_set_max_seats_below_occupancy_rejected(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)

        with self.assertRaises(CapacityError):
            capacity_service.set_max_seats(batch.pk, 1)
        batch.refresh_from_db()
        self.assertEqual(batch.max_seats, 3)

        capacity_service.set_max_seats(batch.pk, 2)
        batch.refresh_from_db()
        self.assertEqual(batch.max_seats, 2)

    def test_set_max_seats_zero_rejected(self):
        with self.assertRaises(CapacityError):
            capacity_service.set_max_seats(self.batch.pk, 0)

    def test_database_refuses_overbooking(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            Batch.objects.filter(pk=self.batch.pk).update(
                current_enrolled=F('max_seats') + 1,
            )

    def test_reconcile_reports_and_fixes(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        Batch.objects.filter(pk=self.batch.pk).update(current_enrolled=0)

        self.assertEqual(capacity_service.reconcile(self.batch.pk), (0, 1))
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 0)

        self.assertEqual(capacity_service.reconcile(self.batch.pk, fix=True), (0, 1))
        self.assertSeatInvariant(self.batch)


# ═════════════════════════════════════════════════════════════════════════════
# 2. ENROLLMENT LEDGER
# ═════════════════════════════════════════════════════════════════════════════

class LedgerServiceTests(AcademyTestBase):

    def test_insert_pending(self):
        enrollment = ledger_service.insert_pending(self.student_a.pk, self.batch.pk)
        self.assertEqual(enrollment.status, EnrollmentStatus.PENDING)
        self.assertEqual(
            ledger_service.find_by_user_and_batch(self.student_a.pk, self.batch.pk),
            enrollment,
        )

    def test_insert_duplicate(self):
        ledger_service.insert_pending(self.student_a.pk, self.batch.pk)
        with self.assertRaises(DuplicateEnrollmentError):
            ledger_service.insert_pending(self.student_a.pk, self.batch.pk)
        self.assertEqual(Enrollment.objects.filter(user=self.student_a).count(), 1)

    def test_unique_violation_reported_as_duplicate(self):
        existing = ledger_service.insert_pending(self.student_a.pk, self.batch.pk)
        # Pre-check misses the row, the UNIQUE constraint catches it
        with mock.patch.object(
            ledger_service, 'find_by_user_and_batch', side_effect=[None, existing],
        ):
            with self.assertRaises(DuplicateEnrollmentError):
                ledger_service.insert_pending(self.student_a.pk, self.batch.pk)
        self.assertEqual(Enrollment.objects.filter(user=self.student_a).count(), 1)

    def test_find_missing_returns_none(self):
        self.assertIsNone(
            ledger_service.find_by_user_and_batch(self.student_a.pk, self.batch.pk)
        )

    def test_set_status_missing(self):
        with self.assertRaises(NotFoundError):
            ledger_service.set_status(MISSING_ID, EnrollmentStatus.CONFIRMED)

    def test_remove(self):
        enrollment = ledger_service.insert_pending(self.student_a.pk, self.batch.pk)
        removed = ledger_service.remove(enrollment.pk)
        self.assertEqual(removed.pk, enrollment.pk)
        self.assertFalse(Enrollment.objects.filter(pk=enrollment.pk).exists())

    def test_remove_missing(self):
        with self.assertRaises(NotFoundError):
            ledger_service.remove(MISSING_ID)


# ═════════════════════════════════════════════════════════════════════════════
# 3. BOOKING ENGINE
# ═════════════════════════════════════════════════════════════════════════════

class EnrollmentServiceTests(AcademyTestBase):

    def test_create_enrollment(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        self.assertEqual(enrollment.status, EnrollmentStatus.PENDING)
        self.assertEqual(enrollment.user, self.student_a)
        self.assertEqual(enrollment.batch.course, self.course)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 1)
        self.assertSeatInvariant(self.batch)

    def test_create_missing_batch(self):
        with self.assertRaises(NotFoundError):
            create_enrollment(self.student_a.pk, MISSING_ID)

    def test_full_batch_then_cancel_frees_seat(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)

        with self.assertRaises(CapacityExceededError):
            create_enrollment(self.student_b.pk, self.batch.pk)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 1)

        cancel_enrollment(enrollment.pk, self.student_a.pk, self.student_a.role)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 0)

        create_enrollment(self.student_b.pk, self.batch.pk)
        self.assertSeatInvariant(self.batch)

    def test_double_booking_counts_once(self):
        batch = self.make_batch(max_seats=5)
        create_enrollment(self.student_a.pk, batch.pk)
        with self.assertRaises(DuplicateEnrollmentError):
            create_enrollment(self.student_a.pk, batch.pk)
        batch.refresh_from_db()
        self.assertEqual(batch.current_enrolled, 1)
        self.assertSeatInvariant(batch)

    def test_full_check_runs_before_duplicate_check(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        with self.assertRaises(CapacityExceededError):
            create_enrollment(self.student_a.pk, self.batch.pk)

    def test_create_then_cancel_round_trip(self):
        batch = self.make_batch(max_seats=4)
        create_enrollment(self.student_b.pk, batch.pk)
        batch.refresh_from_db()
        before = batch.current_enrolled

        enrollment = create_enrollment(self.student_a.pk, batch.pk)
        ack = cancel_enrollment(enrollment.pk, self.student_a.pk, self.student_a.role)

        self.assertIn('detail', ack)
        batch.refresh_from_db()
        self.assertEqual(batch.current_enrolled, before)
        self.assertFalse(Enrollment.objects.filter(pk=enrollment.pk).exists())

    def test_cancel_by_other_student_forbidden(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        with self.assertRaises(ForbiddenError):
            cancel_enrollment(enrollment.pk, self.student_b.pk, self.student_b.role)
        self.assertTrue(Enrollment.objects.filter(pk=enrollment.pk).exists())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 1)

    def test_cancel_by_instructor_forbidden(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        with self.assertRaises(ForbiddenError):
            cancel_enrollment(enrollment.pk, self.instructor.pk, self.instructor.role)

    def test_cancel_by_admin(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        cancel_enrollment(enrollment.pk, self.admin.pk, self.admin.role)
        self.assertSeatInvariant(self.batch)
        self.assertEqual(self.batch.current_enrolled, 0)

    def test_cancel_twice(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        cancel_enrollment(enrollment.pk, self.student_a.pk, self.student_a.role)
        with self.assertRaises(NotFoundError):
            cancel_enrollment(enrollment.pk, self.student_a.pk, self.student_a.role)
        self.assertSeatInvariant(self.batch)

    def test_confirm(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        confirmed = set_enrollment_status(enrollment.pk, EnrollmentStatus.CONFIRMED)
        self.assertEqual(confirmed.status, EnrollmentStatus.CONFIRMED)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 1)

    def test_set_status_is_idempotent(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        first = set_enrollment_status(enrollment.pk, EnrollmentStatus.CONFIRMED)
        second = set_enrollment_status(enrollment.pk, EnrollmentStatus.CONFIRMED)
        self.assertEqual(first.status, second.status)
        self.assertEqual(first.updated_at, second.updated_at)

    def test_set_invalid_status(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        with self.assertRaises(InvalidStatusError):
            set_enrollment_status(enrollment.pk, 'CANCELLED')
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.status, EnrollmentStatus.PENDING)

    def test_set_status_missing(self):
        with self.assertRaises(NotFoundError):
            set_enrollment_status(MISSING_ID, EnrollmentStatus.CONFIRMED)

    def test_cancelled_confirmed_enrollment_releases_seat(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        set_enrollment_status(enrollment.pk, EnrollmentStatus.CONFIRMED)
        cancel_enrollment(enrollment.pk, self.student_a.pk, self.student_a.role)
        self.assertSeatInvariant(self.batch)

    def test_list_for_user(self):
        other = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, self.batch.pk)
        create_enrollment(self.student_a.pk, other.pk)
        create_enrollment(self.student_b.pk, other.pk)

        mine = list(list_enrollments_for_user(self.student_a.pk))
        self.assertEqual(len(mine), 2)
        self.assertTrue(all(e.user_id == self.student_a.pk for e in mine))

    def test_list_for_batch(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)
        self.assertEqual(list_enrollments_for_batch(batch.pk).count(), 2)

    def test_list_for_missing_batch(self):
        with self.assertRaises(NotFoundError):
            list_enrollments_for_batch(MISSING_ID)


# ═════════════════════════════════════════════════════════════════════════════
# 4. CONCURRENT BOOKINGS
# ═════════════════════════════════════════════════════════════════════════════

class ConcurrentEnrollmentTests(TransactionTestCase):
    """Real threads, each on its own database connection."""

    def setUp(self):
        self.course = Course.objects.create(title='Concurrency', price=Decimal('0'))
        self.batch = Batch.objects.create(
            course=self.course,
            start_date=timezone.now() + timedelta(days=1),
            max_seats=5,
        )
        self.users = [
            User.objects.create_user(email=f'student{i}@test.com')
            for i in range(12)
        ]

    def run_in_threads(self, calls):
        results = [None] * len(calls)
        barrier = threading.Barrier(len(calls))

        def worker(index, func):
            try:
                barrier.wait()
                results[index] = func()
            except Exception as exc:  # collected and asserted on below
                results[index] = exc
            finally:
                connection.close()

        threads = [
            threading.Thread(target=worker, args=(i, call))
            for i, call in enumerate(calls)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_more_bookings_than_seats(self):
        results = self.run_in_threads([
            (lambda uid=user.pk: create_enrollment(uid, self.batch.pk))
            for user in self.users
        ])

        successes = [r for r in results if isinstance(r, Enrollment)]
        rejected = [r for r in results if isinstance(r, CapacityExceededError)]
        self.assertEqual(len(successes), 5)
        self.assertEqual(len(rejected), len(self.users) - 5)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 5)
        self.assertEqual(Enrollment.objects.filter(batch=self.batch).count(), 5)

    def test_same_user_books_once(self):
        user = self.users[0]
        results = self.run_in_threads([
            (lambda: create_enrollment(user.pk, self.batch.pk))
            for _ in range(6)
        ])

        successes = [r for r in results if isinstance(r, Enrollment)]
        duplicates = [r for r in results if isinstance(r, DuplicateEnrollmentError)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(duplicates), 5)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 1)

    def test_interleaved_cancel_and_create(self):
        held = [create_enrollment(u.pk, self.batch.pk) for u in self.users[:5]]
        waiting = self.users[5:10]

        calls = [
            (lambda e=e: cancel_enrollment(e.pk, e.user_id, UserRole.STUDENT))
            for e in held
        ] + [
            (lambda uid=u.pk: create_enrollment(uid, self.batch.pk))
            for u in waiting
        ]
        results = self.run_in_threads(calls)

        errors = [r for r in results if isinstance(r, Exception)
                  and not isinstance(r, CapacityExceededError)]
        self.assertEqual(errors, [])

        self.batch.refresh_from_db()
        live = Enrollment.objects.filter(batch=self.batch).count()
        self.assertEqual(self.batch.current_enrolled, live)
        self.assertLessEqual(live, self.batch.max_seats)


# ═════════════════════════════════════════════════════════════════════════════
# 5. STORE FAILURES
# ═════════════════════════════════════════════════════════════════════════════

class StoreFailureTests(AcademyTestBase):

    def test_lock_failure_is_retryable(self):
        with mock.patch.object(
            capacity_service, 'lock_batch',
            side_effect=OperationalError('database is locked'),
        ):
            with self.assertRaises(StoreUnavailable):
                create_enrollment(self.student_a.pk, self.batch.pk)
        self.assertSeatInvariant(self.batch)

    def test_failure_after_insert_rolls_back(self):
        with mock.patch.object(
            capacity_service, 'try_reserve',
            side_effect=OperationalError('connection lost'),
        ):
            with self.assertRaises(StoreUnavailable):
                create_enrollment(self.student_a.pk, self.batch.pk)

        self.assertFalse(Enrollment.objects.filter(user=self.student_a).exists())
        self.assertSeatInvariant(self.batch)
        self.assertEqual(self.batch.current_enrolled, 0)

    def test_failure_during_cancel_keeps_row_and_seat(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        with mock.patch.object(
            capacity_service, 'release',
            side_effect=OperationalError('connection lost'),
        ):
            with self.assertRaises(StoreUnavailable):
                cancel_enrollment(enrollment.pk, self.student_a.pk, self.student_a.role)

        self.assertTrue(Enrollment.objects.filter(pk=enrollment.pk).exists())
        self.assertSeatInvariant(self.batch)
        self.assertEqual(self.batch.current_enrolled, 1)

    def test_underflow_during_cancel_rolls_back(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        Batch.objects.filter(pk=self.batch.pk).update(current_enrolled=0)

        with self.assertRaises(CapacityUnderflowError):
            cancel_enrollment(enrollment.pk, self.admin.pk, self.admin.role)
        self.assertTrue(Enrollment.objects.filter(pk=enrollment.pk).exists())

    def test_failure_during_user_delete_keeps_user_and_seat(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        with mock.patch.object(
            enrollment_service, '_apply_lock_timeout',
            side_effect=OperationalError('lock timeout'),
        ):
            with self.assertRaises(StoreUnavailable):
                delete_users([self.student_a.pk])

        self.assertTrue(User.objects.filter(pk=self.student_a.pk).exists())
        self.assertSeatInvariant(self.batch)
        self.assertEqual(self.batch.current_enrolled, 1)


# ═════════════════════════════════════════════════════════════════════════════
# 6. REST API
# ═════════════════════════════════════════════════════════════════════════════

class EnrollmentAPITests(AcademyTestBase, APITestCase):
    url = '/api/academy/enrollments/'

    def book(self, user, batch):
        self.client.force_authenticate(user=user)
        return self.client.post(self.url, {'batchId': str(batch.pk)}, format='json')

    def test_requires_authentication(self):
        response = self.client.post(self.url, {'batchId': str(self.batch.pk)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create(self):
        response = self.book(self.student_a, self.batch)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], EnrollmentStatus.PENDING)
        self.assertEqual(response.data['user']['email'], self.student_a.email)
        self.assertEqual(response.data['batch']['course']['title'], self.course.title)
        self.assertEqual(response.data['batch']['current_enrolled'], 1)

    def test_create_validation_error(self):
        self.client.force_authenticate(user=self.student_a)
        response = self.client.post(self.url, {'batchId': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_missing_batch(self):
        self.client.force_authenticate(user=self.student_a)
        response = self.client.post(self.url, {'batchId': MISSING_ID}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'not_found')

    def test_create_full_batch(self):
        self.book(self.student_a, self.batch)
        response = self.book(self.student_b, self.batch)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'batch_full')

    def test_create_duplicate(self):
        batch = self.make_batch(max_seats=3)
        self.book(self.student_a, batch)
        response = self.book(self.student_a, batch)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'already_enrolled')

    @override_settings(STORE_RETRY_AFTER_SECONDS=7)
    def test_store_unavailable(self):
        with mock.patch.object(
            capacity_service, 'lock_batch',
            side_effect=OperationalError('database is locked'),
        ):
            response = self.book(self.student_a, self.batch)
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response['Retry-After'], '7')
        self.assertEqual(response.data['code'], 'store_unavailable')

    def test_list_only_own(self):
        other = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, self.batch.pk)
        create_enrollment(self.student_b.pk, other.pk)

        self.client.force_authenticate(user=self.student_a)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['user']['id'], str(self.student_a.pk))

    def test_list_filter_by_status(self):
        other = self.make_batch(max_seats=3)
        first = create_enrollment(self.student_a.pk, self.batch.pk)
        create_enrollment(self.student_a.pk, other.pk)
        set_enrollment_status(first.pk, EnrollmentStatus.CONFIRMED)

        self.client.force_authenticate(user=self.student_a)
        response = self.client.get(self.url, {'status': 'CONFIRMED'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['id'], str(first.pk))

    def test_retrieve_other_users_enrollment(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        self.client.force_authenticate(user=self.student_b)
        response = self.client.get(f'{self.url}{enrollment.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.get(f'{self.url}{enrollment.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_cancel_own(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        self.client.force_authenticate(user=self.student_a)
        response = self.client.delete(f'{self.url}{enrollment.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('detail', response.data)
        self.assertSeatInvariant(self.batch)
        self.assertEqual(self.batch.current_enrolled, 0)

    def test_cancel_someone_elses(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        self.client.force_authenticate(user=self.student_b)
        response = self.client.delete(f'{self.url}{enrollment.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'forbidden')
        self.assertTrue(Enrollment.objects.filter(pk=enrollment.pk).exists())

    def test_cancel_missing(self):
        self.client.force_authenticate(user=self.student_a)
        response = self.client.delete(f'{self.url}{MISSING_ID}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_set_status_as_instructor(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        self.client.force_authenticate(user=self.instructor)
        url = f'{self.url}{enrollment.pk}/status/'

        response = self.client.patch(url, {'status': 'CONFIRMED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'CONFIRMED')

        response = self.client.patch(url, {'status': 'CONFIRMED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_set_status_invalid(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        self.client.force_authenticate(user=self.admin)
        response = self.client.patch(
            f'{self.url}{enrollment.pk}/status/', {'status': 'CANCELLED'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_status')

    def test_set_status_as_student_forbidden(self):
        enrollment = create_enrollment(self.student_a.pk, self.batch.pk)
        self.client.force_authenticate(user=self.student_a)
        response = self.client.patch(
            f'{self.url}{enrollment.pk}/status/', {'status': 'CONFIRMED'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_batch_roster(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)

        self.client.force_authenticate(user=self.instructor)
        response = self.client.get(f'{self.url}batch/{batch.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_batch_roster_missing_batch(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(f'{self.url}batch/{MISSING_ID}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_batch_roster_as_student_forbidden(self):
        self.client.force_authenticate(user=self.student_a)
        response = self.client.get(f'{self.url}batch/{self.batch.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


# ═════════════════════════════════════════════════════════════════════════════
# 7. BATCH MANAGEMENT & CASCADES
# ═════════════════════════════════════════════════════════════════════════════

class BatchServiceTests(AcademyTestBase):

    def test_create_batch_starts_empty(self):
        batch = create_batch(self.course, timezone.now() + timedelta(days=3), 20)
        self.assertEqual(batch.current_enrolled, 0)
        self.assertEqual(batch.max_seats, 20)

    def test_update_ignores_seat_counter(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        new_start = timezone.now() + timedelta(days=30)
        update_batch(self.batch, start_date=new_start, current_enrolled=0)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.start_date, new_start)
        self.assertEqual(self.batch.current_enrolled, 1)

    def test_update_rejects_shrink_below_occupancy(self):
        batch = self.make_batch(max_seats=2)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)
        with self.assertRaises(CapacityError):
            update_batch(batch, max_seats=1)

    def test_available_batches(self):
        full = self.batch
        create_enrollment(self.student_a.pk, full.pk)
        open_batch = self.make_batch(max_seats=2)
        self.make_batch(max_seats=2, days=-1)

        available = list(available_batches())
        self.assertEqual(available, [open_batch])

    def test_delete_batch_drops_enrollments(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)

        self.assertEqual(delete_batch(batch), 2)
        self.assertFalse(Batch.objects.filter(pk=batch.pk).exists())
        self.assertFalse(Enrollment.objects.filter(batch_id=batch.pk).exists())

    def test_course_delete_cascades(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        self.course.delete()
        self.assertFalse(Batch.objects.exists())
        self.assertFalse(Enrollment.objects.exists())

    def test_user_delete_releases_seats(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)
        create_enrollment(self.student_a.pk, self.batch.pk)

        self.student_a.delete()

        self.assertSeatInvariant(batch)
        self.assertSeatInvariant(self.batch)
        self.assertEqual(batch.current_enrolled, 1)
        self.assertEqual(self.batch.current_enrolled, 0)

    def test_user_queryset_delete_releases_seats(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)

        User.objects.filter(pk=self.student_a.pk).delete()

        self.assertSeatInvariant(batch)
        self.assertEqual(batch.current_enrolled, 1)

    def test_batch_and_course_delete_release_nothing(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        other = self.make_batch(max_seats=2)
        create_enrollment(self.student_b.pk, other.pk)
        last = self.make_batch(max_seats=2)
        create_enrollment(self.student_a.pk, last.pk)

        with mock.patch.object(capacity_service, 'release') as release:
            delete_batch(other)
            Batch.objects.filter(pk=self.batch.pk).delete()
            self.course.delete()
        release.assert_not_called()
        self.assertFalse(Enrollment.objects.exists())

    def test_delete_users_releases_every_seat(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)
        create_enrollment(self.instructor.pk, batch.pk)
        create_enrollment(self.student_a.pk, self.batch.pk)

        deleted = delete_users([self.student_a.pk, self.student_b.pk])

        self.assertEqual(deleted, 2)
        self.assertFalse(User.objects.filter(pk=self.student_a.pk).exists())
        self.assertSeatInvariant(batch)
        self.assertSeatInvariant(self.batch)
        self.assertEqual(batch.current_enrolled, 1)
        self.assertEqual(self.batch.current_enrolled, 0)

    def test_delete_users_without_enrollments(self):
        self.assertEqual(delete_users([self.student_b.pk]), 1)
        self.assertSeatInvariant(self.batch)

    def test_admin_bulk_delete_releases_seats(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)
        create_enrollment(self.student_b.pk, self.batch.pk)

        user_admin = UserAdmin(User, admin.site)
        user_admin.delete_queryset(
            None, User.objects.filter(pk__in=[self.student_a.pk, self.student_b.pk]),
        )

        self.assertSeatInvariant(batch)
        self.assertSeatInvariant(self.batch)
        self.assertEqual(batch.current_enrolled, 0)
        self.assertEqual(self.batch.current_enrolled, 0)

    def test_admin_single_delete_releases_seat(self):
        create_enrollment(self.student_a.pk, self.batch.pk)

        UserAdmin(User, admin.site).delete_model(None, self.student_a)

        self.assertSeatInvariant(self.batch)
        self.assertEqual(self.batch.current_enrolled, 0)


class CourseAPITests(AcademyTestBase, APITestCase):
    url = '/api/academy/courses/'

    def test_instructor_creates_course(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(self.url, {
            'title': 'Distributed Systems', 'price': '120.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['instructor'], self.instructor.pk)
        self.assertTrue(response.data['slug'].startswith('distributed-systems-'))

    def test_student_cannot_create_course(self):
        self.client.force_authenticate(user=self.student_a)
        response = self.client.post(self.url, {'title': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_catalog_hides_inactive_courses(self):
        Course.objects.create(title='Retired', price=Decimal('5.00'), is_active=False)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['title'] for c in response.data], [self.course.title])

    def test_delete_requires_admin(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        self.client.force_authenticate(user=self.instructor)
        response = self.client.delete(f'{self.url}{self.course.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.delete(f'{self.url}{self.course.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Enrollment.objects.exists())


class BatchAPITests(AcademyTestBase, APITestCase):
    url = '/api/academy/batches/'

    def test_create_as_instructor(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(self.url, {
            'course': str(self.course.pk),
            'start_date': (timezone.now() + timedelta(days=10)).isoformat(),
            'max_seats': 15,
            'current_enrolled': 9,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['current_enrolled'], 0)
        self.assertEqual(response.data['seats_available'], 15)

    def test_create_as_student_forbidden(self):
        self.client.force_authenticate(user=self.student_a)
        response = self.client.post(self.url, {
            'course': str(self.course.pk),
            'start_date': timezone.now().isoformat(),
            'max_seats': 15,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_shrink_below_occupancy_conflict(self):
        batch = self.make_batch(max_seats=3)
        create_enrollment(self.student_a.pk, batch.pk)
        create_enrollment(self.student_b.pk, batch.pk)

        self.client.force_authenticate(user=self.admin)
        response = self.client.patch(f'{self.url}{batch.pk}/', {'max_seats': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_capacity')

        response = self.client.patch(f'{self.url}{batch.pk}/', {'max_seats': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['max_seats'], 2)

    def test_available_is_public(self):
        response = self.client.get(f'{self.url}available/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_list_filter_by_course(self):
        other = Course.objects.create(title='Networking', price=Decimal('10.00'))
        self.make_batch(max_seats=2, course=other)

        self.client.force_authenticate(user=self.student_a)
        response = self.client.get(self.url, {'course': str(other.pk)})
        self.assertEqual(len(response.data), 1)

    def test_delete_requires_admin(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.delete(f'{self.url}{self.batch.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.delete(f'{self.url}{self.batch.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


# ═════════════════════════════════════════════════════════════════════════════
# 8. SEAT-COUNT AUDIT
# ═════════════════════════════════════════════════════════════════════════════

class CheckSeatCountsCommandTests(AcademyTestBase):

    def test_consistent(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        out = StringIO()
        call_command('check_seat_counts', stdout=out)
        self.assertIn('consistent', out.getvalue())

    def test_drift_detected_then_fixed(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        Batch.objects.filter(pk=self.batch.pk).update(current_enrolled=0)

        with self.assertRaises(CommandError):
            call_command('check_seat_counts', stdout=StringIO())

        out = StringIO()
        call_command('check_seat_counts', '--fix', stdout=out)
        self.assertIn('Repaired 1', out.getvalue())
        self.assertSeatInvariant(self.batch)

    def test_unknown_batch(self):
        with self.assertRaises(CommandError):
            call_command('check_seat_counts', '--batch', MISSING_ID, stdout=StringIO())

    def test_malformed_batch_id(self):
        with self.assertRaises(CommandError):
            call_command('check_seat_counts', '--batch', 'not-a-uuid', stdout=StringIO())

    def test_unrepairable_batch_fails_the_run(self):
        create_enrollment(self.student_a.pk, self.batch.pk)
        # Bypasses the engine: two rows for one seat
        Enrollment.objects.create(user=self.student_b, batch=self.batch)

        out, err = StringIO(), StringIO()
        with self.assertRaises(CommandError):
            call_command('check_seat_counts', '--fix', stdout=out, stderr=err)

        self.assertIn('raise the capacity first', err.getvalue())
        self.assertNotIn('Repaired', out.getvalue())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 1)
