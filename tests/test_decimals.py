import unittest
from decimal import Decimal

import decimals
from errors import DecimalParseError, MultiplicationOverflowError, ZeroDecimalError


class TestNonZeroDecimal(unittest.TestCase):
    def test_non_zero_values_round_trip(self):
        for raw in (12, "12", "9.760000", "-3.5", Decimal("0.001"), "1E+5"):
            with self.subTest(raw=raw):
                value = decimals.NonZeroDecimal(raw)
                self.assertEqual(value.value, Decimal(raw))

    def test_zero_in_any_representation_fails(self):
        for raw in (0, "0", "0.000", "-0", Decimal("0E-7"), 0.0):
            with self.subTest(raw=raw):
                with self.assertRaises(ZeroDecimalError):
                    decimals.NonZeroDecimal(raw)

    def test_float_uses_shortest_repr(self):
        self.assertEqual(decimals.NonZeroDecimal(0.1).value, Decimal("0.1"))

    def test_malformed_text_fails_to_parse(self):
        for raw in ("", "abc", " 1.5", "1.5\n", "NaN", "Infinity"):
            with self.subTest(raw=raw):
                with self.assertRaises(DecimalParseError):
                    decimals.NonZeroDecimal(raw)

    def test_equality_with_plain_decimals(self):
        self.assertEqual(decimals.NonZeroDecimal("9.760000"), Decimal("9.76"))
        self.assertEqual(decimals.NonZeroDecimal(3), 3)
        self.assertNotEqual(decimals.NonZeroDecimal(3), decimals.NonZeroDecimal(4))

    def test_str_keeps_original_digits(self):
        self.assertEqual(str(decimals.NonZeroDecimal("6.675000")), "6.675000")


class TestCheckedMultiply(unittest.TestCase):
    def test_multiplies_exactly(self):
        product = decimals.checked_multiply(
            decimals.NonZeroDecimal(60),
            decimals.NonZeroDecimal("9.76"),
        )
        self.assertEqual(product, Decimal("585.6"))

    def test_overflow_is_reported(self):
        with self.assertRaises(MultiplicationOverflowError):
            decimals.checked_multiply(
                decimals.NonZeroDecimal("1E+20"),
                decimals.NonZeroDecimal("1E+20"),
            )

    def test_round_places_is_half_even(self):
        self.assertEqual(decimals.round_places(Decimal("2.5"), 0), Decimal("2"))
        self.assertEqual(decimals.round_places(Decimal("3.5"), 0), Decimal("4"))
        self.assertEqual(decimals.round_places(Decimal("0.12351"), 3), Decimal("0.124"))


if __name__ == "__main__":
    unittest.main()
