from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from accounts.models import Role, User
from common.utils.geo import bounding_box
from services.dispatch_management.exceptions import RangeExceededError
from services.matching import find_candidates, profiles_in_box
from .models import ResponderProfile
from . import services

ORIGIN = (28.6139, 77.2090)


def make_responder(email, role=Role.DOCTOR, position=None, **extra):
	user = User.objects.create_user(
		username=email.split('@')[0],
		email=email,
		password='pass1234',
		role=role,
		**extra
	)
	profile = ResponderProfile.objects.create(
		user=user,
		current_latitude=position[0] if position else None,
		current_longitude=position[1] if position else None,
	)
	return user, profile


class CounterLedgerTests(TestCase):
	def setUp(self):
		self.user, self.profile = make_responder('doc@example.com', position=ORIGIN)
		self.other, _ = make_responder('other@example.com', position=ORIGIN)

	def test_offers_and_acceptances_add_up(self):
		services.record_offers([self.user.id, self.other.id])
		services.record_offers([self.user.id])
		services.record_acceptance(self.user.id)

		self.profile.refresh_from_db()
		self.assertEqual((self.profile.offered_count, self.profile.accepted_count), (2, 1))
		self.assertEqual(ResponderProfile.objects.get(user=self.other).offered_count, 1)

	def test_empty_offer_batch(self):
		self.assertEqual(services.record_offers([]), 0)

	def test_location_update_keeps_counters(self):
		stale = ResponderProfile.objects.get(pk=self.profile.pk)
		services.record_offers([self.user.id])
		services.record_acceptance(self.user.id)

		services.update_responder_location(stale, 28.7, 77.3)

		self.profile.refresh_from_db()
		self.assertEqual((self.profile.offered_count, self.profile.accepted_count), (1, 1))
		self.assertEqual((self.profile.current_latitude, self.profile.current_longitude), (28.7, 77.3))

	def test_device_handle_cleared_with_blank(self):
		services.update_device_handle(self.user, 'fcm-token')
		self.assertEqual(User.objects.get(pk=self.user.pk).device_id, 'fcm-token')

		services.update_device_handle(self.user, '')
		self.assertIsNone(User.objects.get(pk=self.user.pk).device_id)


class CandidateDirectoryTests(TestCase):
	def setUp(self):
		self.near, _ = make_responder('near@example.com', position=(28.6140, 77.2091))
		self.mid, _ = make_responder('mid@example.com', position=(28.6180, 77.2120))
		# Inside the 1km box but ~1.25km away
		self.corner, _ = make_responder('corner@example.com', position=(28.6219, 77.2180))
		self.no_position, _ = make_responder('unknown@example.com')
		self.inactive, _ = make_responder('inactive@example.com', position=ORIGIN, is_active=False)
		self.ambulance, _ = make_responder('amb@example.com', Role.TRANSIT, position=ORIGIN)

	def test_box_query_includes_corner(self):
		box = bounding_box(*ORIGIN, 1000)

		ids = set(profiles_in_box(Role.DOCTOR, box).values_list('user_id', flat=True))

		self.assertEqual(ids, {self.near.id, self.mid.id, self.corner.id})

	def test_candidates_within_true_distance_closest_first(self):
		self.assertEqual(
			list(find_candidates(Role.DOCTOR, *ORIGIN, 1000)),
			[self.near.id, self.mid.id]
		)

	def test_candidates_of_requested_class_only(self):
		self.assertEqual(list(find_candidates(Role.TRANSIT, *ORIGIN, 1000)), [self.ambulance.id])

	def test_generator_restarts(self):
		first = list(find_candidates(Role.DOCTOR, *ORIGIN, 1000))
		second = list(find_candidates(Role.DOCTOR, *ORIGIN, 1000))

		self.assertEqual(first, second)

	def test_invalid_radius(self):
		with self.assertRaises(RangeExceededError):
			list(find_candidates(Role.DOCTOR, *ORIGIN, 0))

	def test_clients_are_not_a_responder_class(self):
		with self.assertRaises(ValueError):
			profiles_in_box(Role.CLIENT, bounding_box(*ORIGIN, 1000))

	def test_antimeridian_query(self):
		east, _ = make_responder('east@example.com', position=(0.0, 179.999))
		west, _ = make_responder('west@example.com', position=(0.0, -179.999))

		found = list(find_candidates(Role.DOCTOR, 0.0, 179.9995, 1000))

		self.assertEqual(sorted(found), sorted([east.id, west.id]))


class ResponderApiTests(TestCase):
	def setUp(self):
		self.api = APIClient()
		self.doctor, self.profile = make_responder('doc@example.com')
		self.client_user = User.objects.create_user(
			username='client', email='client@example.com', password='pass1234', role=Role.CLIENT
		)

	def test_location_update(self):
		self.api.force_authenticate(user=self.doctor)
		response = self.api.post(
			reverse('responder-location'), {'latitude': 28.61, 'longitude': 77.2}, format='json'
		)

		self.assertEqual(response.status_code, 200)
		self.profile.refresh_from_db()
		self.assertTrue(self.profile.has_position)

	def test_invalid_location(self):
		self.api.force_authenticate(user=self.doctor)
		response = self.api.post(
			reverse('responder-location'), {'latitude': 95, 'longitude': 77.2}, format='json'
		)

		self.assertEqual(response.status_code, 400)

	def test_profile(self):
		self.api.force_authenticate(user=self.doctor)
		response = self.api.get(reverse('responder-profile'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['offered_count'], 0)
		self.assertEqual(response.data['user']['email'], 'doc@example.com')

	def test_clients_have_no_responder_profile(self):
		self.api.force_authenticate(user=self.client_user)
		response = self.api.get(reverse('responder-profile'))

		self.assertEqual(response.status_code, 403)

	def test_responder_without_profile_is_404(self):
		doctor = User.objects.create_user(
			username='newdoc', email='newdoc@example.com', password='pass1234', role=Role.DOCTOR
		)
		self.api.force_authenticate(user=doctor)

		for response in (
			self.api.get(reverse('responder-profile')),
			self.api.post(reverse('responder-location'), {'latitude': 28.61, 'longitude': 77.2}, format='json'),
		):
			self.assertEqual(response.status_code, 404)
			self.assertEqual(response.data['error'], 'responder_not_found')
		self.assertFalse(ResponderProfile.objects.filter(user=doctor).exists())
