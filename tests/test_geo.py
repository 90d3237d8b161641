import unittest

from community_dashboard.core.geo import (
    KAABA,
    Alignment,
    GeoPoint,
    alignment,
    bearing,
    distance_km,
    distance_to_kaaba,
    heading_delta,
    qibla_bearing,
)

ORIGIN = GeoPoint(0.0, 0.0)
JAKARTA = GeoPoint(-6.2, 106.816666)
BANDUNG = GeoPoint(-6.9175, 107.6191)


class BearingTests(unittest.TestCase):
    def test_cardinal_directions(self):
        self.assertAlmostEqual(bearing(ORIGIN, GeoPoint(10, 0)), 0.0)
        self.assertAlmostEqual(bearing(ORIGIN, GeoPoint(0, 10)), 90.0)
        self.assertAlmostEqual(bearing(ORIGIN, GeoPoint(-10, 0)), 180.0)
        self.assertAlmostEqual(bearing(ORIGIN, GeoPoint(0, -10)), 270.0)

    def test_range(self):
        for destination in (GeoPoint(-45, -170), GeoPoint(60, 179), GeoPoint(-89, 3)):
            value = bearing(JAKARTA, destination)
            self.assertGreaterEqual(value, 0.0)
            self.assertLess(value, 360.0)

    def test_reverse_bearing_roughly_opposite(self):
        forward = bearing(JAKARTA, BANDUNG)
        back = bearing(BANDUNG, JAKARTA)
        self.assertAlmostEqual((back - forward) % 360, 180.0, delta=1.0)

    def test_qibla_from_jakarta(self):
        self.assertAlmostEqual(qibla_bearing(JAKARTA), 295.0, delta=1.0)


class DistanceTests(unittest.TestCase):
    def test_zero_and_symmetric(self):
        self.assertEqual(distance_km(JAKARTA, JAKARTA), 0.0)
        self.assertAlmostEqual(distance_km(JAKARTA, BANDUNG), distance_km(BANDUNG, JAKARTA))

    def test_one_degree_of_longitude_at_equator(self):
        self.assertAlmostEqual(distance_km(ORIGIN, GeoPoint(0, 1)), 111.19, places=1)

    def test_antipodes(self):
        self.assertAlmostEqual(distance_km(ORIGIN, GeoPoint(0, 180)), 6371.0 * 3.141592653589793, places=3)

    def test_jakarta_to_kaaba(self):
        distance = distance_to_kaaba(JAKARTA)
        self.assertGreater(distance, 7800)
        self.assertLess(distance, 8100)
        self.assertEqual(distance_to_kaaba(KAABA), 0.0)


class AlignmentTests(unittest.TestCase):
    def test_delta_normalised(self):
        self.assertEqual(heading_delta(350, 10), 20)
        self.assertEqual(heading_delta(10, 350), -20)
        self.assertEqual(heading_delta(0, 180), 180)
        self.assertEqual(heading_delta(180, 0), 180)
        self.assertEqual(heading_delta(90, 90), 0)

    def test_alignment(self):
        self.assertEqual(alignment(293, 295), Alignment(2, True, "aligned"))
        self.assertEqual(alignment(280, 295), Alignment(15, False, "right"))
        self.assertEqual(alignment(310, 295), Alignment(-15, False, "left"))

    def test_threshold(self):
        self.assertFalse(alignment(0, 5).aligned)
        self.assertTrue(alignment(0, 5, threshold=10).aligned)


if __name__ == "__main__":
    unittest.main()
