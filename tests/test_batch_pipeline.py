import threading
import unittest

from assetimport.config import ImportSettings
from assetimport.errors import BatchValidationError, KnownRecordsUnavailable, PersistenceError
from assetimport.extraction.providers import BaseProvider, ProviderChain
from assetimport.ingestion.candidate_types import PRE_SUPPLIED, ImportCandidate, ItemStatus, ProviderResult
from assetimport.pipeline.batch import run_import_batch


class FakeProvider(BaseProvider):
    """Serves canned content per URI; raises for URIs listed in `errors`."""

    def __init__(self, name, responses=None, *, errors=None, rate_limited=False, default=None):
        self.name = name
        self.is_rate_limited = rate_limited
        self.responses = dict(responses or {})
        self.errors = dict(errors or {})
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, uri, *, timeout):
        with self._lock:
            self.calls.append(uri)
        if uri in self.errors:
            raise self.errors[uri]
        if uri in self.responses:
            return self.responses[uri]
        if self.default is not None:
            return self.default
        raise RuntimeError(f"{self.name} has nothing for {uri}")


class FakeStore:
    """Known-source lookup plus record creation, kept in memory per tenant."""

    def __init__(self, known=None, *, fail_for=(), lookup_error=None):
        self.records = {}
        self.known = {t: set(uris) for t, uris in (known or {}).items()}
        self.fail_for = set(fail_for)
        self.lookup_error = lookup_error
        self.lookup_calls = 0
        self.created = []

    def list_known_source_uris(self, tenant_scope):
        self.lookup_calls += 1
        if self.lookup_error is not None:
            raise self.lookup_error
        return set(self.known.get(tenant_scope, ())) | {
            uri for (tenant, uri) in self.records if tenant == tenant_scope
        }

    def create_record(self, candidate, outcome, tenant_scope):
        if candidate.source_uri in self.fail_for:
            raise PersistenceError("disk full")
        asset_id = f"asset-{len(self.records) + 1}"
        self.records[(tenant_scope, candidate.source_uri)] = (asset_id, outcome)
        self.created.append(candidate.source_uri)
        return asset_id


BODY = "Long enough article body. " * 20


def _uri(i):
    return f"https://blog.example.com/posts/{i}"


def _run(candidates, store, chain, **kwargs):
    kwargs.setdefault("sleep", lambda s: None)
    return run_import_batch(candidates, "acme", chain=chain, lookup=store, recorder=store, **kwargs)


def _assert_consistent(test, report, n):
    test.assertEqual(report.total, n)
    test.assertEqual(report.succeeded + report.failed + report.skipped, report.total)
    test.assertLessEqual(report.succeeded_with_warning, report.succeeded)


class TestBatchPipeline(unittest.TestCase):
    def test_mixed_batch_example(self):
        a, b, c = _uri("a"), _uri("b"), _uri("c")
        primary = FakeProvider("firecrawl", {c: ProviderResult(content="c" * 300)}, rate_limited=True)
        fallback = FakeProvider("jina", {b: ProviderResult(content="b" * 40)})
        store = FakeStore()
        candidates = [
            ImportCandidate(a, "A", prefetched_content="a" * 500),
            ImportCandidate(b, "B"),
            ImportCandidate(c, "C"),
            ImportCandidate(a, "A again"),
        ]
        report = _run(candidates, store, ProviderChain([primary, fallback]))

        _assert_consistent(self, report, 4)
        self.assertEqual(report.succeeded, 2)
        self.assertEqual(report.failed, 1)
        self.assertEqual(report.skipped, 1)
        self.assertEqual(report.live_retrievals, 2)
        by_uri = {r.source_uri: r for r in report.results if r.status is not ItemStatus.SKIPPED_DUPLICATE_IN_BATCH}
        self.assertEqual(by_uri[a].provider_used, PRE_SUPPLIED)
        self.assertEqual(by_uri[c].provider_used, "primary")
        self.assertIn("too short", by_uri[b].detail)
        self.assertEqual(by_uri[b].provider_used, "fallback-1")
        self.assertNotIn(a, primary.calls)
        self.assertEqual(sorted(store.created), sorted([a, c]))

    def test_second_run_skips_everything(self):
        store = FakeStore()
        chain = ProviderChain([FakeProvider("jina", default=ProviderResult(content=BODY))])
        candidates = [ImportCandidate(_uri(i), f"Post {i}") for i in range(6)]

        first = _run(candidates, store, chain)
        second = _run(candidates, store, chain)

        self.assertEqual(first.succeeded, 6)
        self.assertEqual(second.succeeded, 0)
        self.assertEqual(second.skipped, 6)
        self.assertTrue(all(r.status is ItemStatus.SKIPPED_ALREADY_IMPORTED for r in second.results))
        self.assertEqual(len(store.records), 6)
        self.assertEqual(store.lookup_calls, 2)

    def test_known_sources_are_per_tenant(self):
        store = FakeStore(known={"other": {_uri(1)}})
        chain = ProviderChain([FakeProvider("jina", default=ProviderResult(content=BODY))])
        report = _run([ImportCandidate(_uri(1), "One")], store, chain)
        self.assertEqual(report.succeeded, 1)

    def test_in_batch_duplicates_create_one_record_in_both_modes(self):
        for rate_limited in (True, False):
            with self.subTest(rate_limited=rate_limited):
                store = FakeStore()
                provider = FakeProvider("p", default=ProviderResult(content=BODY), rate_limited=rate_limited)
                candidates = [ImportCandidate(_uri(1), "One")] * 4 + [ImportCandidate(_uri(2), "Two")]
                report = _run(candidates, store, ProviderChain([provider]))

                self.assertEqual(report.succeeded, 2)
                self.assertEqual(report.skipped, 3)
                self.assertEqual(len(store.records), 2)
                self.assertEqual(provider.calls.count(_uri(1)), 1)

    def test_fallthrough_uses_next_provider(self):
        primary = FakeProvider("firecrawl", errors={_uri(1): RuntimeError("HTTP 500")})
        fallback = FakeProvider("jina", default=ProviderResult(content=BODY))
        report = _run([ImportCandidate(_uri(1), "One")], FakeStore(), ProviderChain([primary, fallback]))
        self.assertEqual(report.succeeded, 1)
        self.assertEqual(report.results[0].provider_used, "fallback-1")

    def test_one_bad_item_does_not_stop_batch(self):
        bad = _uri(3)
        p0 = FakeProvider("firecrawl", default=ProviderResult(content=BODY), errors={bad: RuntimeError("boom")})
        p1 = FakeProvider("jina", default=ProviderResult(content=BODY), errors={bad: RuntimeError("boom")})
        candidates = [ImportCandidate(_uri(i), f"Post {i}") for i in range(10)]
        report = _run(candidates, FakeStore(), ProviderChain([p0, p1]))

        _assert_consistent(self, report, 10)
        self.assertEqual(report.succeeded, 9)
        self.assertEqual(report.failed, 1)
        failed = report.by_status(ItemStatus.FAILED)[0]
        self.assertEqual(failed.source_uri, bad)
        self.assertIn("boom", failed.detail)

    def test_report_counts_always_add_up(self):
        chain = ProviderChain([FakeProvider("jina", default=ProviderResult(content=BODY))])
        for n in range(1, 101):
            with self.subTest(n=n):
                candidates = []
                for i in range(n):
                    if i % 7 == 3:
                        candidates.append(ImportCandidate("not a url", "bad"))
                    elif i % 5 == 4:
                        candidates.append(ImportCandidate(_uri(i - 1), "dup"))
                    else:
                        candidates.append(ImportCandidate(_uri(i), f"Post {i}"))
                report = _run(candidates, FakeStore(), chain)
                _assert_consistent(self, report, n)

    def test_persistence_failure_becomes_failed_item(self):
        store = FakeStore(fail_for={_uri(2)})
        chain = ProviderChain([FakeProvider("jina", default=ProviderResult(content=BODY))])
        report = _run([ImportCandidate(_uri(i), f"Post {i}") for i in range(3)], store, chain)

        self.assertEqual(report.succeeded, 2)
        failed = report.by_status(ItemStatus.FAILED)
        self.assertEqual(len(failed), 1)
        self.assertIn("persistence failed", failed[0].detail)

    def test_lookup_failure_rejects_batch(self):
        store = FakeStore(lookup_error=ConnectionError("db down"))
        chain = ProviderChain([FakeProvider("jina", default=ProviderResult(content=BODY))])
        with self.assertRaises(KnownRecordsUnavailable):
            _run([ImportCandidate(_uri(1), "One")], store, chain)
        self.assertEqual(store.records, {})

    def test_empty_batch_rejected(self):
        chain = ProviderChain([FakeProvider("jina")])
        with self.assertRaises(BatchValidationError):
            _run([], FakeStore(), chain)

    def test_live_retrieval_disabled(self):
        provider = FakeProvider("jina", default=ProviderResult(content=BODY))
        candidates = [
            ImportCandidate(_uri(1), "One", prefetched_content=BODY),
            ImportCandidate(_uri(2), "Two"),
        ]
        report = _run(candidates, FakeStore(), ProviderChain([provider]), allow_live_retrieval=False)

        self.assertEqual(report.succeeded, 1)
        self.assertEqual(report.failed, 1)
        self.assertEqual(report.live_retrievals, 0)
        self.assertEqual(provider.calls, [])

    def test_warnings_are_counted(self):
        provider = FakeProvider(
            "jina",
            {_uri(1): ProviderResult(content=BODY, warning="Target URL returned error 403")},
            default=ProviderResult(content=BODY),
        )
        report = _run([ImportCandidate(_uri(i), f"Post {i}") for i in range(3)], FakeStore(), ProviderChain([provider]))
        self.assertEqual(report.succeeded, 3)
        self.assertEqual(report.succeeded_with_warning, 1)
        body = report.to_dict()
        self.assertEqual(body["withErrors"], 1)
        self.assertEqual(body["warnings"][0]["url"], _uri(1))

    def test_canonical_dedup_setting(self):
        store = FakeStore(known={"acme": {"https://blog.example.com/posts/1"}})
        chain = ProviderChain([FakeProvider("jina", default=ProviderResult(content=BODY))])
        candidates = [
            ImportCandidate("https://blog.example.com/posts/1/?utm_source=x", "One"),
            ImportCandidate("https://Blog.example.com/posts/2", "Two"),
            ImportCandidate("https://blog.example.com/posts/2#comments", "Two again"),
        ]
        exact = _run(candidates, FakeStore(known=store.known), chain)
        canonical = _run(candidates, store, chain, settings=ImportSettings(canonical_dedup=True))

        self.assertEqual(exact.succeeded, 3)
        self.assertEqual(canonical.succeeded, 1)
        self.assertEqual(canonical.skipped, 2)

    def test_sequential_mode_paces_live_calls(self):
        sleeps = []
        provider = FakeProvider("firecrawl", default=ProviderResult(content=BODY), rate_limited=True)
        candidates = [ImportCandidate(_uri(i), f"Post {i}") for i in range(4)]
        _run(candidates, FakeStore(), ProviderChain([provider]), sleep=sleeps.append)
        self.assertEqual(sleeps, [3.5, 3.5, 3.5])
        self.assertEqual(provider.calls, [_uri(i) for i in range(4)])

    def test_extracted_title_used_when_caller_gives_none(self):
        store = FakeStore()
        provider = FakeProvider(
            "jina",
            {_uri("titled"): ProviderResult(content=BODY, title="Real Post Title")},
            default=ProviderResult(content=BODY),
        )
        candidates = [
            ImportCandidate(_uri("titled")),
            ImportCandidate("https://blog.example.com/posts/shipping-faster_weekly"),
            ImportCandidate(_uri("named"), "Caller Title"),
        ]
        report = _run(candidates, store, ProviderChain([provider]))

        titles = {r.source_uri: r.title for r in report.results}
        self.assertEqual(titles[_uri("titled")], "Real Post Title")
        self.assertEqual(titles["https://blog.example.com/posts/shipping-faster_weekly"], "Shipping Faster Weekly")
        self.assertEqual(titles[_uri("named")], "Caller Title")
        outcome = store.records[("acme", _uri("titled"))][1]
        self.assertEqual(outcome.title, "Real Post Title")


if __name__ == "__main__":
    unittest.main()
