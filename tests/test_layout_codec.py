import unittest

from domain import layout_codec


class LayoutCodecTests(unittest.TestCase):
    def test_decodes_sorted_layout(self):
        key = layout_codec.generate_key()
        token = layout_codec.encode_layout([20, 3, 11], key)
        self.assertEqual(layout_codec.decode_layout(token, key), [3, 11, 20])

    def test_wrong_key_is_rejected(self):
        token = layout_codec.encode_layout([1, 2, 3], layout_codec.generate_key())
        with self.assertRaises(ValueError):
            layout_codec.decode_layout(token, layout_codec.generate_key())

    def test_salt_changes_token(self):
        key = layout_codec.generate_key()
        first = layout_codec.encode_layout([1, 2, 3], key)
        second = layout_codec.encode_layout([1, 2, 3], key)
        self.assertNotEqual(first, second)

    def test_fixed_salt_is_deterministic(self):
        key = "k" * 32
        salt = bytes(layout_codec.SALT_BYTES)
        self.assertEqual(
            layout_codec.encode_layout([5], key, salt),
            layout_codec.encode_layout([5], key, salt),
        )


if __name__ == "__main__":
    unittest.main()
