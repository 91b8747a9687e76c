from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from responders.models import ResponderProfile
from services.dispatch_management.exceptions import UnauthorizedError
from .identity import require_role, verify_identity
from .models import Role, User


class IdentityTests(TestCase):
	def setUp(self):
		self.doctor = User.objects.create_user(
			username='house', email='house@example.com', password='pass1234', role=Role.DOCTOR
		)

	def test_valid_credentials(self):
		self.assertEqual(verify_identity(Role.DOCTOR, 'house@example.com', 'pass1234'), self.doctor)
		self.assertEqual(verify_identity(None, 'house@example.com', 'pass1234'), self.doctor)

	def test_wrong_password(self):
		with self.assertRaises(UnauthorizedError):
			verify_identity(Role.DOCTOR, 'house@example.com', 'wrong')

	def test_unknown_identity(self):
		with self.assertRaises(UnauthorizedError):
			verify_identity(Role.DOCTOR, 'nobody@example.com', 'pass1234')

	def test_role_mismatch(self):
		with self.assertRaises(UnauthorizedError):
			verify_identity(Role.TRANSIT, 'house@example.com', 'pass1234')

	def test_inactive_account(self):
		self.doctor.is_active = False
		self.doctor.save()

		with self.assertRaises(UnauthorizedError):
			require_role(self.doctor, Role.DOCTOR)

	def test_require_role_accepts_any_listed_role(self):
		self.assertEqual(require_role(self.doctor, Role.CLIENT, Role.DOCTOR), self.doctor)


class AuthApiTests(TestCase):
	def setUp(self):
		self.api = APIClient()

	def register(self, **data):
		payload = {
			'username': 'dr_house',
			'email': 'House@Example.com',
			'password': 'password123',
			'role': Role.DOCTOR,
			'phone_number': '+1234567890',
		}
		payload.update(data)
		return self.api.post(reverse('register'), payload, format='json')

	def test_register_responder_creates_profile(self):
		response = self.register(latitude=28.61, longitude=77.2)

		self.assertEqual(response.status_code, 201)
		self.assertIn('access', response.data['tokens'])
		user = User.objects.get(email='house@example.com')
		profile = ResponderProfile.objects.get(user=user)
		self.assertEqual((profile.current_latitude, profile.current_longitude), (28.61, 77.2))

	def test_register_client_has_no_profile(self):
		response = self.register(role=Role.CLIENT)

		self.assertEqual(response.status_code, 201)
		self.assertFalse(ResponderProfile.objects.exists())

	def test_client_cannot_report_position(self):
		response = self.register(role=Role.CLIENT, latitude=28.61, longitude=77.2)

		self.assertEqual(response.status_code, 400)

	def test_duplicate_email(self):
		self.register()
		response = self.register(username='other')

		self.assertEqual(response.status_code, 400)

	def test_login(self):
		self.register()

		response = self.api.post(
			reverse('login'),
			{'email': 'house@example.com', 'password': 'password123', 'role': Role.DOCTOR},
			format='json'
		)
		self.assertEqual(response.status_code, 200)
		self.assertIn('refresh', response.data['tokens'])

		response = self.api.post(
			reverse('token-refresh'), {'refresh': response.data['tokens']['refresh']}, format='json'
		)
		self.assertEqual(response.status_code, 200)
		self.assertIn('access', response.data)

	def test_login_with_wrong_role(self):
		self.register()

		response = self.api.post(
			reverse('login'),
			{'email': 'house@example.com', 'password': 'password123', 'role': Role.CLIENT},
			format='json'
		)
		self.assertEqual(response.status_code, 400)

	def test_device_registration(self):
		self.register()
		user = User.objects.get(email='house@example.com')
		self.api.force_authenticate(user=user)

		response = self.api.post(reverse('device'), {'device_id': 'fcm-token'}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['user']['has_device'])

		response = self.api.post(reverse('device'), {'device_id': None}, format='json')
		self.assertFalse(response.data['user']['has_device'])

		response = self.api.get(reverse('me'))
		self.assertEqual(response.data['email'], 'house@example.com')

	def test_profile_update(self):
		self.register()
		user = User.objects.get(email='house@example.com')
		self.api.force_authenticate(user=user)

		response = self.api.patch(
			reverse('me'),
			{'phone_number': '+1999', 'designation': 'Diagnostician', 'email': 'other@example.com'},
			format='json'
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['phone_number'], '+1999')
		self.assertEqual(response.data['user']['designation'], 'Diagnostician')
		user.refresh_from_db()
		self.assertEqual(user.email, 'house@example.com')
		self.assertEqual(user.username, 'dr_house')
		self.assertEqual(user.role, Role.DOCTOR)

	def test_password_change(self):
		self.register()
		user = User.objects.get(email='house@example.com')
		self.api.force_authenticate(user=user)

		response = self.api.patch(reverse('me'), {'password': 'new-password-42'}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertNotIn('password', response.data['user'])

		self.api.force_authenticate(user=None)
		response = self.api.post(
			reverse('login'), {'email': 'house@example.com', 'password': 'password123'}, format='json'
		)
		self.assertEqual(response.status_code, 400)
		response = self.api.post(
			reverse('login'), {'email': 'house@example.com', 'password': 'new-password-42'}, format='json'
		)
		self.assertEqual(response.status_code, 200)

	def test_short_password_is_rejected(self):
		self.register()
		user = User.objects.get(email='house@example.com')
		self.api.force_authenticate(user=user)

		response = self.api.patch(reverse('me'), {'password': 'short'}, format='json')

		self.assertEqual(response.status_code, 400)
		user.refresh_from_db()
		self.assertTrue(user.check_password('password123'))

	def test_profile_update_requires_authentication(self):
		response = self.api.patch(reverse('me'), {'designation': 'x'}, format='json')

		self.assertEqual(response.status_code, 401)


class UserLookupApiTests(TestCase):
	def setUp(self):
		self.api = APIClient()
		self.client_user = User.objects.create_user(
			username='patient', email='patient@example.com', password='pass1234', role=Role.CLIENT
		)
		self.doctor = User.objects.create_user(
			username='house', email='house@example.com', password='pass1234',
			role=Role.DOCTOR, designation='Diagnostician', device_id='fcm-token',
		)
		ResponderProfile.objects.create(
			user=self.doctor, current_latitude=28.61, current_longitude=77.2,
			offered_count=4, accepted_count=2,
		)
		self.api.force_authenticate(user=self.client_user)

	def test_lookup_returns_public_profile_only(self):
		response = self.api.get(reverse('user-lookup', args=['House@Example.com']))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data, {
			'email': 'house@example.com',
			'username': 'house',
			'role': Role.DOCTOR,
			'phone_number': '',
			'designation': 'Diagnostician',
		})

	def test_lookup_by_role(self):
		url = reverse('user-lookup', args=['house@example.com'])

		self.assertEqual(self.api.get(url, {'role': Role.DOCTOR}).status_code, 200)
		self.assertEqual(self.api.get(url, {'role': Role.TRANSIT}).status_code, 404)

	def test_unknown_email(self):
		response = self.api.get(reverse('user-lookup', args=['nobody@example.com']))

		self.assertEqual(response.status_code, 404)

	def test_requires_authentication(self):
		self.api.force_authenticate(user=None)
		response = self.api.get(reverse('user-lookup', args=['house@example.com']))

		self.assertEqual(response.status_code, 401)
