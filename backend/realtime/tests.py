import json
from unittest.mock import patch

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.test import TestCase

from accounts.models import Role, User
from .consumers import NotificationConsumer, user_group
from .gateway import PushDeliveryError, build_data_message, has_device_handle
from .notifications import NotificationKind, fan_out_except, notify_user
from .tasks import deliver_to_user_task, push_to_device


class DeviceHandleTests(TestCase):
	def test_absent_handles(self):
		for handle in (None, '', '   ', 'none', 'null', 'NULL', 'None'):
			self.assertFalse(has_device_handle(handle), handle)

	def test_real_handle(self):
		self.assertTrue(has_device_handle('fcm-token-123'))

	def test_data_message_is_flat_strings(self):
		message = build_data_message('sos', {'id': 'abc', 'lat': 1.5})

		self.assertEqual(message['title'], 'sos')
		self.assertEqual(json.loads(message['body']), {'id': 'abc', 'lat': 1.5})


@patch('realtime.tasks.get_push_gateway')
class PushDeliveryTests(TestCase):
	def setUp(self):
		self.users = {
			name: User.objects.create_user(
				username=name,
				email=f'{name}@example.com',
				password='pass1234',
				role=Role.DOCTOR,
				device_id=device_id,
			)
			for name, device_id in (('a', 'token-a'), ('b', 'token-b'), ('c', 'token-c'), ('d', 'none'))
		}

	def sent_to(self, mock_gateway):
		return [c.args[0] for c in mock_gateway.return_value.send.call_args_list]

	def test_push_skips_absent_handle(self, mock_gateway):
		self.assertFalse(push_to_device('null', 'sos', {}))
		self.assertFalse(push_to_device(None, 'sos', {}))
		mock_gateway.return_value.send.assert_not_called()

	def test_push_failure_is_logged_not_raised(self, mock_gateway):
		mock_gateway.return_value.send.side_effect = PushDeliveryError('unregistered')

		with self.assertLogs('realtime.tasks', level='WARNING'):
			self.assertFalse(push_to_device('token-a', 'sos', {}))

	def test_job_looks_up_current_handle(self, mock_gateway):
		self.assertTrue(deliver_to_user_task(self.users['a'].id, 'accept', {'requestID': 'x'}))

		mock_gateway.return_value.send.assert_called_once_with('token-a', 'accept', {'requestID': 'x'})

	def test_job_for_user_without_handle(self, mock_gateway):
		self.assertFalse(deliver_to_user_task(self.users['d'].id, 'accept', {}))
		self.assertFalse(deliver_to_user_task(999999, 'accept', {}))
		mock_gateway.return_value.send.assert_not_called()

	def test_fan_out_skips_excluded(self, mock_gateway):
		ids = [self.users[name].id for name in 'abcd']

		submitted = fan_out_except(ids, self.users['b'].id, NotificationKind.RESOLVED, {'id': 'r1'})

		self.assertEqual(submitted, 3)
		self.assertEqual(self.sent_to(mock_gateway), ['token-a', 'token-c'])

	def test_fan_out_failure_does_not_abort_batch(self, mock_gateway):
		def send(device_id, kind, body):
			if device_id == 'token-a':
				raise PushDeliveryError('invalid registration')
			return 'msg-id'
		mock_gateway.return_value.send.side_effect = send

		ids = [self.users[name].id for name in 'abc']
		fan_out_except(ids, None, NotificationKind.SOS, {'id': 'r1'})

		self.assertEqual(self.sent_to(mock_gateway), ['token-a', 'token-b', 'token-c'])

	def test_fan_out_deduplicates(self, mock_gateway):
		a = self.users['a'].id

		self.assertEqual(fan_out_except([a, a], None, NotificationKind.SOS, {}), 1)
		self.assertEqual(fan_out_except([a], a, NotificationKind.SOS, {}), 0)

	def test_notify_user(self, mock_gateway):
		self.assertTrue(notify_user(self.users['c'].id, NotificationKind.REJECTION, {'requestID': 'r1'}))
		self.assertFalse(notify_user(None, NotificationKind.REJECTION, {}))

		self.assertEqual(self.sent_to(mock_gateway), ['token-c'])


class NotificationConsumerTests(TestCase):
	def setUp(self):
		self.user = User.objects.create_user(
			username='doc',
			email='doc@example.com',
			password='pass1234',
			role=Role.DOCTOR,
		)

	def test_notifications_reach_personal_group(self):
		user = self.user

		async def scenario():
			communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), '/ws/notifications/')
			communicator.scope['user'] = user
			connected, _ = await communicator.connect()
			self.assertTrue(connected)

			greeting = await communicator.receive_json_from()
			self.assertEqual(greeting['type'], 'connection_established')

			await get_channel_layer().group_send(
				user_group(user.id),
				{'type': 'dispatch.notification', 'kind': 'sos', 'body': {'id': 'r1'}},
			)
			message = await communicator.receive_json_from()
			self.assertEqual(message, {'type': 'sos', 'body': {'id': 'r1'}})

			await communicator.send_json_to({'type': 'ping'})
			self.assertEqual(await communicator.receive_json_from(), {'type': 'pong'})

			await communicator.disconnect()

		async_to_sync(scenario)()

	def test_anonymous_connection_is_closed(self):
		from django.contrib.auth.models import AnonymousUser

		async def scenario():
			communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), '/ws/notifications/')
			communicator.scope['user'] = AnonymousUser()
			connected, _ = await communicator.connect()
			self.assertFalse(connected)

		async_to_sync(scenario)()
