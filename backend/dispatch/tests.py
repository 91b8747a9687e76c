import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from accounts.models import Role, User
from responders.models import ResponderProfile
from services.dispatch_management import (
	AlreadyClaimedError,
	AlreadyResolvedError,
	DispatchError,
	OfferNotFoundError,
	RangeExceededError,
	RequestNotFoundError,
	StoreUnavailableError,
	UnauthorizedError,
	claim_request,
	create_request,
	create_transit_request,
	decline_request,
	escalate_request,
	request_history,
	resolve_request,
)
from services.dispatch_management import store
from services.dispatch_management.resilience import retry_on_transient_error
from .models import DispatchOffer, DispatchRequest, RequestState

ORIGIN = (28.6139, 77.2090)

LIFECYCLE = 'services.dispatch_management.lifecycle'


def make_user(email, role, position=None, device_id=None):
	user = User.objects.create_user(
		username=email.split('@')[0],
		email=email,
		password='pass1234',
		role=role,
		device_id=device_id,
	)
	if role != Role.CLIENT:
		ResponderProfile.objects.create(
			user=user,
			current_latitude=position[0] if position else None,
			current_longitude=position[1] if position else None,
		)
	return user


def counters(user):
	profile = ResponderProfile.objects.get(user=user)
	return profile.offered_count, profile.accepted_count


class DispatchFixtureMixin:
	def setUp(self):
		self.client_user = make_user('client@example.com', Role.CLIENT)
		# ~15m, ~155m and ~540m from the origin
		self.doctor_a = make_user('a@example.com', Role.DOCTOR, (28.6140, 77.2091))
		self.doctor_b = make_user('b@example.com', Role.DOCTOR, (28.6150, 77.2100))
		self.doctor_c = make_user('c@example.com', Role.DOCTOR, (28.6180, 77.2120))
		# ~13km away
		self.doctor_far = make_user('far@example.com', Role.DOCTOR, (28.7000, 77.3000))
		self.transit = make_user('ambulance@example.com', Role.TRANSIT, (28.6141, 77.2092))

		fan_out = patch(f'{LIFECYCLE}.fan_out_except', side_effect=lambda ids, excluded, kind, body: len(
			[i for i in ids if i != excluded]
		))
		notify = patch(f'{LIFECYCLE}.notify_user', return_value=True)
		self.fan_out = fan_out.start()
		self.notify = notify.start()
		self.addCleanup(fan_out.stop)
		self.addCleanup(notify.stop)

	def broadcast(self, radius=1000):
		result = create_request(self.client_user, *ORIGIN, note='Chest pain', radius=radius)
		return result.request


class CreateRequestTests(DispatchFixtureMixin, TestCase):
	def test_create_offers_every_doctor_in_range(self):
		request = self.broadcast()

		self.assertEqual(
			request.candidate_ids(),
			[self.doctor_a.id, self.doctor_b.id, self.doctor_c.id]
		)
		self.assertEqual(request.responder_class, Role.DOCTOR)
		self.assertEqual(request.state, RequestState.BROADCASTING)

		for doctor in (self.doctor_a, self.doctor_b, self.doctor_c):
			self.assertEqual(counters(doctor), (1, 0))
		self.assertEqual(counters(self.doctor_far), (0, 0))
		self.assertEqual(counters(self.transit), (0, 0))

		self.fan_out.assert_called_once()
		ids, excluded, kind, body = self.fan_out.call_args.args
		self.assertEqual(list(ids), [self.doctor_a.id, self.doctor_b.id, self.doctor_c.id])
		self.assertIsNone(excluded)
		self.assertEqual(kind, 'sos')
		self.assertEqual(body['id'], str(request.id))
		self.assertEqual(body['note'], 'Chest pain')

	def test_radius_limits_candidates(self):
		request = self.broadcast(radius=200)

		self.assertEqual(request.candidate_ids(), [self.doctor_a.id, self.doctor_b.id])

	def test_create_with_nobody_in_range_still_persists(self):
		result = create_request(self.client_user, 0.0, 0.0, radius=500)

		self.assertTrue(result.success)
		self.assertEqual(result.extra['candidates'], 0)
		self.assertEqual(result.request.candidate_ids(), [])

	def test_radius_outside_limits_is_rejected(self):
		with self.assertRaises(RangeExceededError):
			self.broadcast(radius=20000)
		with self.assertRaises(RangeExceededError):
			self.broadcast(radius=0)

		self.assertFalse(DispatchRequest.objects.exists())
		self.fan_out.assert_not_called()

	def test_transit_service_cannot_broadcast(self):
		with self.assertRaises(UnauthorizedError):
			create_request(self.transit, *ORIGIN, radius=1000)

	def test_client_cannot_request_transit_directly(self):
		with self.assertRaises(UnauthorizedError):
			create_request(self.client_user, *ORIGIN, radius=1000, responder_class=Role.TRANSIT)

	def test_doctor_cannot_request_transit_without_a_claimed_sos(self):
		with self.assertRaises(UnauthorizedError):
			create_request(self.doctor_a, *ORIGIN, radius=1000)

		# An SOS someone else claimed does not qualify either
		sos = self.broadcast()
		claim_request(self.doctor_b, sos.id)
		with self.assertRaises(UnauthorizedError):
			create_request(self.doctor_a, *ORIGIN, radius=1000, parent=sos)

		self.assertEqual(DispatchRequest.objects.filter(responder_class=Role.TRANSIT).count(), 0)
		self.assertEqual(counters(self.transit), (0, 0))


class EscalateRequestTests(DispatchFixtureMixin, TestCase):
	def test_escalation_only_adds_new_candidates(self):
		request = self.broadcast(radius=200)
		before = request.candidate_ids()

		result = escalate_request(self.client_user, request.id, 1000)

		after = result.request.candidate_ids()
		self.assertTrue(set(before) <= set(after))
		self.assertEqual(after, [self.doctor_a.id, self.doctor_b.id, self.doctor_c.id])
		self.assertEqual(result.extra['added'], 1)
		self.assertEqual(result.request.search_radius, 1000)

		# Only the newly reached doctor is notified
		self.assertEqual(self.fan_out.call_count, 2)
		ids, excluded, kind, body = self.fan_out.call_args.args
		self.assertEqual(list(ids), [self.doctor_c.id])
		self.assertIsNone(excluded)
		self.assertEqual(kind, 'sos')
		self.assertEqual(body['id'], str(request.id))
		self.assertEqual(counters(self.doctor_a), (1, 0))
		self.assertEqual(counters(self.doctor_c), (1, 0))

	def test_smaller_radius_never_shrinks_the_search(self):
		request = self.broadcast(radius=1000)

		result = escalate_request(self.client_user, request.id, 200)

		self.assertEqual(result.extra['added'], 0)
		self.assertEqual(result.request.search_radius, 1000)
		request.refresh_from_db()
		self.assertEqual(request.search_radius, 1000)

	def test_repeated_escalation_is_a_no_op(self):
		request = self.broadcast(radius=200)
		escalate_request(self.client_user, request.id, 1000)
		calls = self.fan_out.call_count

		result = escalate_request(self.client_user, request.id, 1000)

		self.assertEqual(result.extra['added'], 0)
		self.assertEqual(self.fan_out.call_count, calls)
		self.assertEqual(DispatchOffer.objects.filter(request=request).count(), 3)
		self.assertEqual(counters(self.doctor_c), (1, 0))

	def test_only_requester_can_escalate(self):
		request = self.broadcast(radius=200)

		with self.assertRaises(UnauthorizedError):
			escalate_request(self.doctor_a, request.id, 1000)

	def test_escalating_resolved_request_fails(self):
		request = self.broadcast(radius=200)
		resolve_request(self.client_user, request.id)

		with self.assertRaises(AlreadyResolvedError):
			escalate_request(self.client_user, request.id, 1000)

	def test_escalating_above_maximum_radius_fails(self):
		request = self.broadcast(radius=200)

		with self.assertRaises(RangeExceededError):
			escalate_request(self.client_user, request.id, 50000)


class ClaimRequestTests(DispatchFixtureMixin, TestCase):
	def test_first_claim_wins(self):
		request = self.broadcast()

		result = claim_request(self.doctor_a, request.id)

		self.assertTrue(result.success)
		self.assertEqual(result.extra['requester']['email'], 'client@example.com')
		self.assertNotIn('password', result.extra['requester'])
		self.assertNotIn('device_id', result.extra['requester'])

		with self.assertRaises(AlreadyClaimedError):
			claim_request(self.doctor_b, request.id)

		request.refresh_from_db()
		self.assertEqual(request.claimant, self.doctor_a)
		self.assertEqual(request.state, RequestState.CLAIMED)
		self.assertEqual(counters(self.doctor_a), (1, 1))
		self.assertEqual(counters(self.doctor_b), (1, 0))

	def test_claim_notifies_requester_and_other_candidates(self):
		request = self.broadcast()
		self.fan_out.reset_mock()

		claim_request(self.doctor_a, request.id)

		self.notify.assert_called_once()
		user_id, kind, body = self.notify.call_args.args
		self.assertEqual(user_id, self.client_user.id)
		self.assertEqual(kind, 'accept')
		self.assertEqual(body['email'], 'a@example.com')
		self.assertEqual(body['requestID'], str(request.id))

		ids, excluded, kind, body = self.fan_out.call_args.args
		self.assertEqual(excluded, self.doctor_a.id)
		self.assertEqual(kind, 'resolved')
		self.assertEqual(body, {'id': str(request.id)})

	def test_repeat_claim_by_claimant_counts_once(self):
		request = self.broadcast()
		claim_request(self.doctor_a, request.id)

		result = claim_request(self.doctor_a, request.id)

		self.assertTrue(result.success)
		self.assertEqual(result.message, 'You have already claimed this request')
		self.assertEqual(counters(self.doctor_a), (1, 1))
		self.assertEqual(self.notify.call_count, 2)

	def test_claim_retry_after_unacknowledged_commit_still_notifies(self):
		request = self.broadcast()
		self.fan_out.reset_mock()
		# The first attempt committed but its caller never heard back
		self.assertTrue(store.conditional_set_claimant(request.id, self.doctor_a.id))

		result = claim_request(self.doctor_a, request.id)

		self.assertTrue(result.success)
		self.assertEqual(counters(self.doctor_a), (1, 1))
		self.notify.assert_called_once()
		user_id, kind, body = self.notify.call_args.args
		self.assertEqual(user_id, self.client_user.id)
		self.assertEqual(kind, 'accept')
		self.assertEqual(body['requestID'], str(request.id))
		self.fan_out.assert_called_once()
		ids, excluded, kind, _ = self.fan_out.call_args.args
		self.assertEqual(excluded, self.doctor_a.id)
		self.assertEqual(kind, 'resolved')

	def test_only_candidates_can_claim(self):
		request = self.broadcast()

		with self.assertRaises(OfferNotFoundError):
			claim_request(self.doctor_far, request.id)
		with self.assertRaises(UnauthorizedError):
			claim_request(self.transit, request.id)
		with self.assertRaises(UnauthorizedError):
			claim_request(self.client_user, request.id)

	def test_claim_on_resolved_request_fails(self):
		request = self.broadcast()
		resolve_request(self.client_user, request.id)

		with self.assertRaises(AlreadyResolvedError):
			claim_request(self.doctor_a, request.id)

	def test_unknown_request(self):
		with self.assertRaises(RequestNotFoundError):
			claim_request(self.doctor_a, uuid.uuid4())

	def test_late_claim_after_exhaustion(self):
		request = self.broadcast(radius=200)
		decline_request(self.doctor_a, request.id)
		decline_request(self.doctor_b, request.id)

		request.refresh_from_db()
		self.assertEqual(request.state, RequestState.EXHAUSTED)

		claim_request(self.doctor_b, request.id)

		request.refresh_from_db()
		self.assertEqual(request.claimant, self.doctor_b)

	@patch('services.dispatch_management.store.record_acceptance', side_effect=OperationalError('lost connection'))
	def test_store_failure_rolls_back_claim(self, mock_record):
		request = self.broadcast()

		with self.assertRaises(StoreUnavailableError):
			claim_request(self.doctor_a, request.id)

		request.refresh_from_db()
		self.assertIsNone(request.claimant)
		self.assertEqual(mock_record.call_count, 4)
		self.notify.assert_not_called()


class DeclineRequestTests(DispatchFixtureMixin, TestCase):
	def test_last_decline_reports_exhaustion_once(self):
		request = self.broadcast()

		first = decline_request(self.doctor_b, request.id)
		second = decline_request(self.doctor_a, request.id)
		self.assertEqual(first.extra['rejection_count'], 1)
		self.assertEqual(second.extra['rejection_count'], 2)
		self.notify.assert_not_called()

		third = decline_request(self.doctor_c, request.id)

		self.assertEqual(third.extra['rejection_count'], 3)
		self.assertTrue(third.extra['exhausted'])
		self.notify.assert_called_once()
		user_id, kind, body = self.notify.call_args.args
		self.assertEqual(user_id, self.client_user.id)
		self.assertEqual(kind, 'rejection')
		self.assertEqual(body['requestID'], str(request.id))

	def test_decline_counts_once_per_responder(self):
		request = self.broadcast()

		decline_request(self.doctor_a, request.id)
		result = decline_request(self.doctor_a, request.id)

		self.assertEqual(result.message, 'Already declined')
		self.assertFalse(result.extra['exhausted'])
		request.refresh_from_db()
		self.assertEqual(request.rejection_count, 1)
		self.notify.assert_not_called()

	def test_decline_retry_after_unacknowledged_commit_reports_exhaustion(self):
		request = self.broadcast()
		decline_request(self.doctor_a, request.id)
		decline_request(self.doctor_b, request.id)
		# The last decline committed but its caller never heard back
		self.assertEqual(store.increment_rejection(request.id, self.doctor_c.id), (3, 3))
		self.notify.assert_not_called()

		result = decline_request(self.doctor_c, request.id)

		self.assertEqual(result.message, 'Already declined')
		self.assertTrue(result.extra['exhausted'])
		self.assertEqual(result.extra['rejection_count'], 3)
		request.refresh_from_db()
		self.assertEqual(request.rejection_count, 3)
		self.notify.assert_called_once()
		user_id, kind, body = self.notify.call_args.args
		self.assertEqual(user_id, self.client_user.id)
		self.assertEqual(kind, 'rejection')
		self.assertEqual(body['requestID'], str(request.id))

	def test_decline_after_claim_is_harmless(self):
		request = self.broadcast()
		claim_request(self.doctor_a, request.id)

		result = decline_request(self.doctor_b, request.id)

		self.assertTrue(result.success)
		request.refresh_from_db()
		self.assertEqual(request.rejection_count, 0)
		self.assertEqual(request.claimant, self.doctor_a)

	def test_non_candidate_cannot_decline(self):
		request = self.broadcast()

		with self.assertRaises(OfferNotFoundError):
			decline_request(self.doctor_far, request.id)

	def test_decline_on_resolved_request_fails(self):
		request = self.broadcast()
		resolve_request(self.client_user, request.id)

		with self.assertRaises(AlreadyResolvedError):
			decline_request(self.doctor_a, request.id)


class ResolveRequestTests(DispatchFixtureMixin, TestCase):
	def test_resolve_skips_claimant(self):
		request = self.broadcast()
		claim_request(self.doctor_a, request.id)
		with self.assertRaises(AlreadyClaimedError):
			claim_request(self.doctor_b, request.id)
		self.fan_out.reset_mock()

		result = resolve_request(self.client_user, request.id)

		self.assertEqual(result.extra['notified'], 2)
		ids, excluded, kind, body = self.fan_out.call_args.args
		self.assertEqual(
			[i for i in ids if i != excluded],
			[self.doctor_b.id, self.doctor_c.id]
		)
		self.assertEqual(kind, 'resolved')
		self.assertEqual(body, {'id': str(request.id)})

		request.refresh_from_db()
		self.assertTrue(request.resolved)
		self.assertEqual(request.state, RequestState.RESOLVED)

	def test_resolve_unclaimed_notifies_every_candidate(self):
		request = self.broadcast()
		self.fan_out.reset_mock()

		resolve_request(self.client_user, request.id)

		_, excluded, _, _ = self.fan_out.call_args.args
		self.assertIsNone(excluded)

	def test_resolve_is_idempotent(self):
		request = self.broadcast()
		resolve_request(self.client_user, request.id)
		resolved_at = DispatchRequest.objects.get(pk=request.id).resolved_at
		calls = self.fan_out.call_count

		result = resolve_request(self.client_user, request.id)

		self.assertTrue(result.success)
		self.assertEqual(self.fan_out.call_count, calls)
		self.assertEqual(DispatchRequest.objects.get(pk=request.id).resolved_at, resolved_at)

	def test_only_requester_can_resolve(self):
		request = self.broadcast()

		with self.assertRaises(UnauthorizedError):
			resolve_request(self.doctor_a, request.id)


class TransitRequestTests(DispatchFixtureMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.sos = self.broadcast()
		claim_request(self.doctor_a, self.sos.id)

	def test_claimant_calls_transit(self):
		self.fan_out.reset_mock()

		result = create_transit_request(self.doctor_a, self.sos.id, note='Needs ICU', radius=1000)

		transit_request = result.request
		self.assertEqual(transit_request.responder_class, Role.TRANSIT)
		self.assertEqual(transit_request.parent_id, self.sos.id)
		self.assertEqual(transit_request.requester, self.doctor_a)
		self.assertEqual(
			(transit_request.origin_latitude, transit_request.origin_longitude),
			ORIGIN
		)
		self.assertEqual(transit_request.candidate_ids(), [self.transit.id])

		ids, _, kind, _ = self.fan_out.call_args.args
		self.assertEqual(list(ids), [self.transit.id])
		self.assertEqual(kind, 'transit')

	def test_transit_lifecycle_reuses_claim_and_resolve(self):
		transit_request = create_transit_request(self.doctor_a, self.sos.id, radius=1000).request

		result = claim_request(self.transit, transit_request.id)
		self.assertEqual(result.extra['requester']['email'], 'a@example.com')
		self.assertEqual(counters(self.transit), (1, 1))

		with self.assertRaises(UnauthorizedError):
			claim_request(self.doctor_b, transit_request.id)

		resolve_request(self.doctor_a, transit_request.id)
		transit_request.refresh_from_db()
		self.assertTrue(transit_request.resolved)

	def test_only_claimant_may_call_transit(self):
		with self.assertRaises(UnauthorizedError):
			create_transit_request(self.doctor_b, self.sos.id, radius=1000)

	def test_resolved_sos_cannot_call_transit(self):
		resolve_request(self.client_user, self.sos.id)

		with self.assertRaises(AlreadyResolvedError):
			create_transit_request(self.doctor_a, self.sos.id, radius=1000)

	def test_history_per_role(self):
		transit_request = create_transit_request(self.doctor_a, self.sos.id, radius=1000).request

		self.assertEqual(list(request_history(self.client_user)), [self.sos])
		self.assertEqual(set(request_history(self.doctor_a)), {self.sos, transit_request})
		self.assertEqual(list(request_history(self.doctor_b)), [self.sos])
		self.assertEqual(list(request_history(self.transit)), [transit_request])
		self.assertEqual(list(request_history(self.doctor_far)), [])


class RequestStoreTests(DispatchFixtureMixin, TestCase):
	def test_conditional_claim_sets_claimant_once(self):
		request = self.broadcast()

		self.assertTrue(store.conditional_set_claimant(request.id, self.doctor_a.id))
		self.assertFalse(store.conditional_set_claimant(request.id, self.doctor_b.id))
		self.assertFalse(store.conditional_set_claimant(request.id, self.doctor_a.id))
		self.assertEqual(counters(self.doctor_a), (1, 1))

	def test_declines_add_up(self):
		request = self.broadcast()

		results = [
			store.increment_rejection(request.id, doctor.id)
			for doctor in (self.doctor_c, self.doctor_a, self.doctor_b)
		]

		self.assertEqual([count for count, _ in results], [1, 2, 3])
		self.assertTrue(all(total == 3 for _, total in results))

	def test_retried_insert_returns_existing_row(self):
		request_id = uuid.uuid4()
		kwargs = dict(
			requester=self.client_user,
			responder_class=Role.DOCTOR,
			lat=ORIGIN[0],
			lon=ORIGIN[1],
			note='',
			radius=1000,
			candidate_ids=[self.doctor_a.id],
		)

		first, created = store.persist_request(request_id, **kwargs)
		again, created_again = store.persist_request(request_id, **kwargs)

		self.assertTrue(created)
		self.assertFalse(created_again)
		self.assertEqual(first.pk, again.pk)
		self.assertEqual(DispatchOffer.objects.filter(request_id=request_id).count(), 1)
		self.assertEqual(counters(self.doctor_a), (1, 0))

	def test_append_skips_existing_offers(self):
		request = self.broadcast(radius=200)

		added = store.append_candidates(request.id, [self.doctor_b.id, self.doctor_c.id], 1000)

		self.assertEqual(added, [self.doctor_c.id])
		self.assertEqual(counters(self.doctor_b), (1, 0))

	def test_malformed_id_is_not_found(self):
		with self.assertRaises(RequestNotFoundError):
			store.load_request('not-a-uuid')


class ConcurrentDispatchTests(DispatchFixtureMixin, TransactionTestCase):
	"""Many responders acting on one request at once, each on its own connection."""

	def setUp(self):
		super().setUp()
		self.crowd = [
			make_user(f'crowd{i}@example.com', Role.DOCTOR, (ORIGIN[0] + 0.0002 * i, ORIGIN[1]))
			for i in range(1, 6)
		]
		self.request = self.broadcast()
		self.responders = [self.doctor_a, self.doctor_b, self.doctor_c] + self.crowd

	def run_together(self, action):
		barrier = threading.Barrier(len(self.responders))

		def attempt(responder):
			barrier.wait()
			try:
				return action(responder, self.request.id)
			except DispatchError as exc:
				return exc
			finally:
				connection.close()

		with ThreadPoolExecutor(max_workers=len(self.responders)) as pool:
			return list(pool.map(attempt, self.responders))

	def test_simultaneous_claims_have_one_winner(self):
		outcomes = self.run_together(claim_request)

		winners = [o for o in outcomes if not isinstance(o, DispatchError)]
		losers = [o for o in outcomes if isinstance(o, DispatchError)]
		self.assertEqual(len(winners), 1)
		self.assertEqual(len(losers), len(self.responders) - 1)
		self.assertTrue(all(isinstance(o, AlreadyClaimedError) for o in losers))

		self.request.refresh_from_db()
		self.assertEqual(self.request.claimant_id, winners[0].request.claimant_id)
		accepted = sum(counters(responder)[1] for responder in self.responders)
		self.assertEqual(accepted, 1)
		self.assertEqual(self.notify.call_count, 1)

	def test_simultaneous_declines_each_count_once(self):
		outcomes = self.run_together(decline_request)

		self.assertFalse([o for o in outcomes if isinstance(o, DispatchError)])
		counts = sorted(o.extra['rejection_count'] for o in outcomes)
		self.assertEqual(counts, list(range(1, len(self.responders) + 1)))
		self.assertEqual(sum(1 for o in outcomes if o.extra['exhausted']), 1)

		self.request.refresh_from_db()
		self.assertEqual(self.request.rejection_count, len(self.responders))
		self.assertEqual(self.request.state, RequestState.EXHAUSTED)
		self.assertEqual(self.notify.call_count, 1)


class RetryOnTransientErrorTests(TestCase):
	def test_transient_errors_are_retried(self):
		attempts = []

		@retry_on_transient_error(max_retries=3, initial_delay=0)
		def flaky():
			attempts.append(1)
			if len(attempts) < 3:
				raise OperationalError('timeout')
			return 'ok'

		self.assertEqual(flaky(), 'ok')
		self.assertEqual(len(attempts), 3)

	def test_exhausted_retries_surface_as_store_unavailable(self):
		@retry_on_transient_error(max_retries=2, initial_delay=0)
		def down():
			raise OperationalError('connection refused')

		with self.assertRaises(StoreUnavailableError):
			down()

	def test_other_errors_are_not_retried(self):
		attempts = []

		@retry_on_transient_error(max_retries=3, initial_delay=0)
		def broken():
			attempts.append(1)
			raise ValueError('bad input')

		with self.assertRaises(ValueError):
			broken()
		self.assertEqual(len(attempts), 1)


class DispatchApiTests(TestCase):
	def setUp(self):
		self.api = APIClient()
		self.client_user = make_user('client@example.com', Role.CLIENT, device_id='client-token')
		self.doctor_a = make_user('a@example.com', Role.DOCTOR, (28.6140, 77.2091), device_id='token-a')
		self.doctor_b = make_user('b@example.com', Role.DOCTOR, (28.6150, 77.2100), device_id='null')

	def create(self, **data):
		self.api.force_authenticate(user=self.client_user)
		payload = {'latitude': ORIGIN[0], 'longitude': ORIGIN[1], 'note': 'Fainted', 'radius': 1000}
		payload.update(data)
		return self.api.post(reverse('dispatch:create-request'), payload, format='json')

	@patch('realtime.tasks.get_push_gateway')
	def test_create_and_claim(self, mock_gateway):
		response = self.create()

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['candidates'], 2)
		request_id = response.data['request']['id']
		# doctor_b has no usable device handle
		sent_to = [c.args[0] for c in mock_gateway.return_value.send.call_args_list]
		self.assertEqual(sent_to, ['token-a'])

		self.api.force_authenticate(user=self.doctor_a)
		response = self.api.post(reverse('dispatch:claim-request', args=[request_id]))
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['requester']['email'], 'client@example.com')
		self.assertEqual(response.data['request']['state'], 'claimed')

		self.api.force_authenticate(user=self.doctor_b)
		response = self.api.post(reverse('dispatch:claim-request', args=[request_id]))
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data, {
			'success': False,
			'error': 'already_claimed',
			'message': 'Request has already been claimed by another responder',
		})

	def test_radius_above_maximum(self):
		response = self.create(radius=50000)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'range_exceeded')

	@override_settings(DISPATCH_DEFAULT_RADIUS_METERS=100)
	def test_default_radius(self):
		self.api.force_authenticate(user=self.client_user)
		response = self.api.post(
			reverse('dispatch:create-request'),
			{'latitude': ORIGIN[0], 'longitude': ORIGIN[1]},
			format='json'
		)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['request']['search_radius'], 100)
		self.assertEqual(response.data['candidates'], 1)

	def test_unknown_request_is_404(self):
		self.api.force_authenticate(user=self.doctor_a)
		response = self.api.post(reverse('dispatch:claim-request', args=[uuid.uuid4()]))

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'request_not_found')

	def test_decline_escalate_resolve_history(self):
		request_id = self.create(radius=50).data['request']['id']

		self.api.force_authenticate(user=self.doctor_a)
		response = self.api.post(reverse('dispatch:decline-request', args=[request_id]))
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['exhausted'])

		self.api.force_authenticate(user=self.client_user)
		response = self.api.post(
			reverse('dispatch:escalate-request', args=[request_id]), {'radius': 1000}, format='json'
		)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['added'], 1)

		response = self.api.post(reverse('dispatch:resolve-request', args=[request_id]))
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['request']['resolved'])

		response = self.api.get(reverse('dispatch:request-history'))
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)

		response = self.api.get(reverse('dispatch:request-detail', args=[request_id]))
		self.assertEqual(response.data['candidate_count'], 2)

	def test_doctor_cannot_broadcast_to_transit_directly(self):
		self.api.force_authenticate(user=self.doctor_a)
		response = self.api.post(
			reverse('dispatch:create-request'),
			{'latitude': ORIGIN[0], 'longitude': ORIGIN[1], 'radius': 1000},
			format='json'
		)

		self.assertEqual(response.status_code, 401)
		self.assertEqual(response.data['error'], 'unauthorized')
		self.assertFalse(DispatchRequest.objects.exists())

	def test_requires_authentication(self):
		response = self.api.post(reverse('dispatch:create-request'), {}, format='json')

		self.assertEqual(response.status_code, 401)


class HealthCheckTests(TestCase):
	@patch('dispatch_backend.views.redis.Redis.from_url')
	def test_healthy(self, mock_redis):
		response = APIClient().get('/health/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(set(response.data['services']), {'database', 'redis', 'channels', 'celery'})
		mock_redis.return_value.ping.assert_called_once()

	@patch('dispatch_backend.views.redis.Redis.from_url', side_effect=ConnectionError('refused'))
	def test_redis_down(self, mock_redis):
		response = APIClient().get('/health/')

		self.assertEqual(response.status_code, 503)
		self.assertTrue(response.data['services']['redis'].startswith('unhealthy'))
