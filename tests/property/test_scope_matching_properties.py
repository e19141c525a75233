"""スコープ照合のプロパティテスト"""

import unittest

from hypothesis import assume, given, settings, strategies as st

from safeguard.auth.federation import match_provider_scope

scope_ids = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N"), whitelist_characters="-_ "),
    max_size=12,
)


class TestScopeMatchingProperties(unittest.TestCase):
    """match_provider_scope の性質を検証する"""

    @given(st.text(min_size=1, max_size=12), st.lists(scope_ids, max_size=8))
    @settings(max_examples=200, deadline=None)
    def test_result_is_a_known_non_empty_scope(self, provider, known):
        """結果は常に一覧中の空でないスコープIDか None"""
        result = match_provider_scope(provider, known)
        if result is not None:
            self.assertIn(result, known)
            self.assertNotEqual(result, "")
            self.assertIn(provider.casefold(), result.casefold())

    @given(st.lists(scope_ids.filter(bool), min_size=1, max_size=8), st.data())
    @settings(max_examples=200, deadline=None)
    def test_exact_match_always_wins(self, known, data):
        """完全一致するスコープがあれば部分一致より優先される"""
        chosen = data.draw(st.sampled_from(known))
        provider = data.draw(st.sampled_from([chosen, chosen.upper(), chosen.lower()]))
        assume(provider.casefold() == chosen.casefold())

        result = match_provider_scope(provider, known)

        self.assertIsNotNone(result)
        self.assertEqual(result.casefold(), provider.casefold())

    @given(st.text(min_size=1, max_size=12), st.lists(scope_ids, max_size=8))
    @settings(max_examples=200, deadline=None)
    def test_none_only_when_nothing_contains_provider(self, provider, known):
        """None になるのは、どのスコープIDにもプロバイダ名が含まれない場合だけ"""
        result = match_provider_scope(provider, known)
        contained = any(scope and provider.casefold() in scope.casefold() for scope in known)
        self.assertEqual(result is None, not contained)


if __name__ == "__main__":  # pragma: no cover - 実行用
    unittest.main()
