"""
Users Tests — registration, login claims, profile and admin user management.
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from academy.models import Batch, Course, Enrollment
from academy.services import enrollment_service
from academy.services.enrollment_service import create_enrollment
from users.models import User, UserRole


class UserModelTests(TestCase):

    def test_create_user_defaults_to_student(self):
        user = User.objects.create_user(email='Student@Test.com', password='testpass123')
        self.assertEqual(user.role, UserRole.STUDENT)
        self.assertFalse(user.is_admin)
        self.assertFalse(user.can_manage_batches)
        self.assertEqual(user.email, 'Student@test.com')

    def test_create_user_requires_email(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='testpass123')

    def test_create_superuser(self):
        user = User.objects.create_superuser(email='root@test.com', password='testpass123')
        self.assertEqual(user.role, UserRole.SUPER_ADMIN)
        self.assertTrue(user.is_admin)
        self.assertTrue(user.is_staff)

    def test_full_name_falls_back_to_email(self):
        user = User.objects.create_user(email='jane@test.com')
        self.assertEqual(user.full_name, 'jane')
        self.assertFalse(user.has_usable_password())

    def test_promote_to_admin(self):
        user = User.objects.create_user(email='jane@test.com')
        user.promote_to_admin()
        user.refresh_from_db()
        self.assertEqual(user.role, UserRole.ADMIN)
        self.assertTrue(user.is_staff)


class AuthAPITests(APITestCase):

    def register(self, **overrides):
        payload = {
            'email': 'new@test.com',
            'password': 'S3cure-pass-word',
            'password_confirm': 'S3cure-pass-word',
            'first_name': 'New',
            'last_name': 'Student',
        }
        payload.update(overrides)
        return self.client.post('/api/auth/register/', payload, format='json')

    def test_register_student(self):
        response = self.register()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['role'], UserRole.STUDENT)
        self.assertIn('access', response.data['tokens'])

    def test_register_instructor(self):
        response = self.register(role='INSTRUCTOR')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['role'], UserRole.INSTRUCTOR)

    def test_register_cannot_claim_admin(self):
        response = self.register(role='ADMIN')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(User.objects.filter(email='new@test.com').exists())

    def test_register_password_mismatch(self):
        response = self.register(password_confirm='something-else-1')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_token_carries_role(self):
        User.objects.create_user(
            email='teacher@test.com', password='S3cure-pass-word',
            role=UserRole.INSTRUCTOR,
        )
        response = self.client.post('/api/auth/login/', {
            'email': 'teacher@test.com', 'password': 'S3cure-pass-word',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        token = AccessToken(response.data['access'])
        self.assertEqual(token['role'], UserRole.INSTRUCTOR)
        self.assertEqual(token['email'], 'teacher@test.com')

    def test_login_wrong_password(self):
        User.objects.create_user(email='teacher@test.com', password='S3cure-pass-word')
        response = self.client.post('/api/auth/login/', {
            'email': 'teacher@test.com', 'password': 'wrong',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_inactive_user(self):
        user = User.objects.create_user(email='gone@test.com', password='S3cure-pass-word')
        user.deactivate()
        response = self.client.post('/api/auth/login/', {
            'email': 'gone@test.com', 'password': 'S3cure-pass-word',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bearer_token_authenticates(self):
        User.objects.create_user(email='me@test.com', password='S3cure-pass-word')
        login = self.client.post('/api/auth/login/', {
            'email': 'me@test.com', 'password': 'S3cure-pass-word',
        }, format='json')

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], 'me@test.com')

    def test_profile_update_keeps_role(self):
        user = User.objects.create_user(email='me@test.com')
        self.client.force_authenticate(user=user)
        response = self.client.patch('/api/auth/me/', {
            'first_name': 'Changed', 'role': 'ADMIN',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.first_name, 'Changed')
        self.assertEqual(user.role, UserRole.STUDENT)


class AdminUserAPITests(APITestCase):

    def setUp(self):
        self.admin = User.objects.create_user(
            email='admin@test.com', role=UserRole.ADMIN, is_staff=True,
        )
        self.student = User.objects.create_user(email='student@test.com')
        self.other = User.objects.create_user(email='other@test.com')
        course = Course.objects.create(title='Databases', price=Decimal('10.00'))
        self.batch = Batch.objects.create(
            course=course,
            start_date=timezone.now() + timedelta(days=5),
            max_seats=2,
        )

    def test_list_requires_admin(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get('/api/admin/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filter_by_role(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/admin/users/', {'role': 'ADMIN'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['email'] for u in response.data], ['admin@test.com'])

    def test_delete_user_releases_seats(self):
        create_enrollment(self.student.pk, self.batch.pk)
        create_enrollment(self.other.pk, self.batch.pk)

        self.client.force_authenticate(user=self.admin)
        response = self.client.delete(f'/api/admin/users/{self.student.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 1)
        self.assertEqual(Enrollment.objects.filter(batch=self.batch).count(), 1)

    def test_delete_user_store_unavailable(self):
        create_enrollment(self.student.pk, self.batch.pk)

        self.client.force_authenticate(user=self.admin)
        with mock.patch.object(
            enrollment_service, '_apply_lock_timeout',
            side_effect=OperationalError('lock timeout'),
        ):
            response = self.client.delete(f'/api/admin/users/{self.student.pk}/')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['code'], 'store_unavailable')
        self.assertIn('Retry-After', response)
        self.assertTrue(User.objects.filter(pk=self.student.pk).exists())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_enrolled, 1)

    def test_delete_missing_user(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.delete('/api/admin/users/00000000-0000-0000-0000-000000000000/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_promote_instructor(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/admin/users/{self.student.pk}/promote_instructor/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], UserRole.INSTRUCTOR)
