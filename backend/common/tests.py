from math import pi

from django.test import SimpleTestCase, override_settings

from services.dispatch_management.exceptions import RangeExceededError
from .utils.geo import (
	EARTH_RADIUS_METERS,
	bounding_box,
	calculate_distance,
	destination_point,
)

METERS_PER_DEGREE = EARTH_RADIUS_METERS * pi / 180


class DistanceTests(SimpleTestCase):
	def test_same_point(self):
		self.assertEqual(calculate_distance(28.6, 77.2, 28.6, 77.2), 0)

	def test_one_degree_of_latitude(self):
		self.assertAlmostEqual(calculate_distance(10, 20, 11, 20), METERS_PER_DEGREE, delta=1)

	def test_destination_point_north(self):
		lat, lon = destination_point(28.6139, 77.2090, 1000, 0)

		self.assertAlmostEqual(lat, 28.6139 + 1000 / METERS_PER_DEGREE, places=6)
		self.assertAlmostEqual(lon, 77.2090, places=6)

	def test_destination_point_wraps_longitude(self):
		_, lon = destination_point(0, 179.999, 1000, 90)

		self.assertLess(lon, -179.99)


class BoundingBoxTests(SimpleTestCase):
	def test_box_contains_circle(self):
		box = bounding_box(28.6139, 77.2090, 5000)

		for bearing in range(0, 360, 15):
			lat, lon = destination_point(28.6139, 77.2090, 5000, bearing)
			self.assertTrue(box.contains(lat, lon), bearing)

	def test_box_scales_with_radius(self):
		small = bounding_box(28.6139, 77.2090, 1000)
		large = bounding_box(28.6139, 77.2090, 5000)

		self.assertLess(large.bottom, small.bottom)
		self.assertGreater(large.top, small.top)
		self.assertLess(large.left, small.left)
		self.assertGreater(large.right, small.right)
		self.assertAlmostEqual(small.top - small.bottom, 2000 / METERS_PER_DEGREE, places=5)

	def test_box_excludes_points_beyond_it(self):
		box = bounding_box(28.6139, 77.2090, 1000)

		lat, lon = destination_point(28.6139, 77.2090, 1200, 0)
		self.assertFalse(box.contains(lat, lon))
		lat, lon = destination_point(28.6139, 77.2090, 1200, 270)
		self.assertFalse(box.contains(lat, lon))

	def test_radius_must_be_positive_and_bounded(self):
		for radius in (0, -5, 10001, None):
			with self.assertRaises(RangeExceededError):
				bounding_box(28.6, 77.2, radius)

	@override_settings(DISPATCH_MAX_RADIUS_METERS=500)
	def test_maximum_comes_from_settings(self):
		with self.assertRaises(RangeExceededError):
			bounding_box(28.6, 77.2, 1000)
		bounding_box(28.6, 77.2, 1000, max_radius=2000)

	def test_antimeridian(self):
		box = bounding_box(0, 179.995, 5000)

		self.assertTrue(box.crosses_antimeridian)
		self.assertTrue(box.contains(0, -179.99))
		self.assertTrue(box.contains(0, 179.99))
		self.assertFalse(box.contains(0, 170))
		self.assertFalse(box.contains(0, -170))

	def test_near_pole_covers_every_longitude(self):
		box = bounding_box(89.99, 0, 5000)

		self.assertEqual((box.left, box.right), (-180.0, 180.0))
		self.assertEqual(box.top, 90.0)
		self.assertTrue(box.contains(89.995, 135))

	def test_high_latitude_box_is_wide_enough(self):
		lat, lon, radius = 70.0, 10.0, 10000
		box = bounding_box(lat, lon, radius)

		# Widest point of the circle lies poleward of the east point
		for bearing in range(60, 121, 2):
			p_lat, p_lon = destination_point(lat, lon, radius, bearing)
			self.assertTrue(box.contains(p_lat, p_lon), bearing)
