import json
import os
import unittest

from assetimport.contracts.import_request import candidates_from_request, validate_import_request
from assetimport.errors import BatchValidationError


def _load_fixture():
    fixture_path = os.path.join(os.path.dirname(__file__), "fixtures", "import_request_sample.json")
    with open(fixture_path, "r", encoding="utf-8") as f:
        return json.load(f)


class TestImportRequestContract(unittest.TestCase):
    def test_sample_fixture_is_valid(self):
        errors = validate_import_request(_load_fixture())
        self.assertEqual(errors, [], msg="Schema validation failed:\n" + "\n".join(errors))

    def test_candidates_from_fixture(self):
        candidates, allow_live = candidates_from_request(_load_fixture())
        self.assertTrue(allow_live)
        self.assertEqual(len(candidates), 2)
        first, second = candidates
        self.assertTrue(first.has_prefetched_content)
        self.assertEqual(first.suggested_kind, "Blog Post")
        self.assertEqual(first.prefetched_published_at.year, 2025)
        self.assertFalse(second.has_prefetched_content)
        self.assertIsNone(second.suggested_kind)
        self.assertIsNone(second.prefetched_published_at)

    def test_live_retrieval_defaults_off(self):
        _, allow_live = candidates_from_request({"posts": [{"url": "https://example.com/a", "title": "A"}]})
        self.assertFalse(allow_live)

    def test_missing_posts_rejected(self):
        errors = validate_import_request({})
        self.assertTrue(any(e.startswith("<root>:") for e in errors))
        with self.assertRaises(BatchValidationError):
            candidates_from_request({})

    def test_empty_and_oversized_rejected(self):
        for n in (0, 101):
            with self.subTest(n=n):
                payload = {"posts": [{"url": f"https://example.com/{i}", "title": "t"} for i in range(n)]}
                with self.assertRaises(BatchValidationError):
                    candidates_from_request(payload)

    def test_error_paths_point_at_post(self):
        errors = validate_import_request({"posts": [{"url": "https://example.com/a"}, {"url": 3, "title": "x"}]})
        self.assertTrue(any(e.startswith("posts/0:") for e in errors))
        self.assertTrue(any(e.startswith("posts/1/url:") for e in errors))

    def test_bad_uri_is_not_a_contract_error(self):
        # per-post URI validity is reported per item later
        self.assertEqual(validate_import_request({"posts": [{"url": "not a url", "title": "x"}]}), [])


if __name__ == "__main__":
    unittest.main()
