"""SecretBuffer / TokenStore のプロパティテスト"""

import unittest

from hypothesis import given, settings, strategies as st

from safeguard.auth.secret import SecretBuffer
from safeguard.auth.token_store import TokenStore

# UTF-8 に符号化できる文字列（サロゲートを除外）
secrets = st.text(alphabet=st.characters(blacklist_categories=("Cs",)), min_size=1, max_size=64)


class TestSecretBufferProperties(unittest.TestCase):
    """消去可能バッファの性質を検証する"""

    @given(secrets)
    @settings(max_examples=100, deadline=None)
    def test_reveal_round_trips_and_wipe_zero_fills(self, value: str):
        secret = SecretBuffer(value)
        self.assertEqual(secret.reveal(), value)
        raw = secret._data
        length = len(raw)

        secret.wipe()

        self.assertEqual(bytes(raw), b"\x00" * length)
        self.assertTrue(secret.wiped)

    @given(secrets)
    @settings(max_examples=100, deadline=None)
    def test_repr_never_contains_value(self, value: str):
        self.assertEqual(repr(SecretBuffer(value)), "SecretBuffer(***)")


class TestTokenStoreProperties(unittest.TestCase):
    """任意の set/clear 操作列の後も保持内容が最後の操作と一致する"""

    @given(st.lists(st.one_of(st.none(), secrets), max_size=10))
    @settings(max_examples=100, deadline=None)
    def test_store_reflects_last_operation(self, operations):
        store = TokenStore(owner="PropertyTest")
        previous_buffers = []
        expected = None

        for op in operations:
            current = store.get()
            if current is not None:
                previous_buffers.append((current._data, len(current._data)))
            if op is None:
                store.clear()
                expected = None
            else:
                store.set(op)
                expected = op

        if expected is None:
            self.assertFalse(store.has())
        else:
            self.assertEqual(store.get().reveal(), expected)
        # 置き換え・消去された古いバッファはすべてゼロ埋めされている
        for raw, length in previous_buffers:
            self.assertEqual(bytes(raw), b"\x00" * length)

        store.dispose()
        self.assertFalse(store.has())


if __name__ == "__main__":  # pragma: no cover - 実行用
    unittest.main()
