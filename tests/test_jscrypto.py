"""
Tests for JavaScript crypto analysis.

Validates:
- Script names taken from file names (Chrome) or function names (Firefox)
- Only JS functions are counted
- Worker threads keyed by tid and counted
- Recommendations
"""

import pytest

from perfscope.analysis import analyze_js_crypto
from perfscope.analysis.jscrypto import is_crypto_script, resource_name, script_from_function_name

from tests.fixtures.profiles import make_profile, thread_dict


FIREFOX_WORKER_FUNC = "(root scope) moz-extension://abc/seipdDecryptionWorker.min.js:1:20"


def _without_file_names(thread):
    thread['funcTable']['fileName'] = [None] * thread['funcTable']['length']
    return thread


class TestScriptNames:

    @pytest.mark.parametrize("name,expected", [
        ("seipdDecryptionWorker.min.js", True),
        ("decrypt.mjs", True),
        ("CryptoWorker", True),
        ("decrypt", False),
        ("app.js", False),
    ])
    def test_is_crypto_script(self, name, expected):
        assert is_crypto_script(name) is expected

    @pytest.mark.parametrize("url,expected", [
        ("https://example.com/lib/openpgp.min.js?v=3", "openpgp.min.js"),
        ("moz-extension://abc/decrypt.js", "decrypt.js"),
        ("plain.js", "plain.js"),
    ])
    def test_resource_name(self, url, expected):
        assert resource_name(url) == expected

    @pytest.mark.parametrize("func_name,expected", [
        (FIREFOX_WORKER_FUNC, "moz-extension://abc/seipdDecryptionWorker.min.js"),
        ("decrypt chrome-extension://xyz/crypto.js", "chrome-extension://xyz/crypto.js"),
        ("decrypt resource://gre/modules/crypto.js", "resource://gre/modules/crypto.js"),
        ("encrypt webpack:///node_modules/openpgp/dist/openpgp.mjs", "openpgp.mjs"),
        ("aesBlock ./src/crypto/aes.ts", "aes.ts"),
        ("decryptMessage", "decryptMessage"),
    ])
    def test_script_from_function_name(self, func_name, expected):
        assert script_from_function_name(func_name) == expected


class TestAnalyzeJSCrypto:

    def test_script_from_file_name(self):
        thread = thread_dict("GeckoMain", stacks=[("main", "decryptBlock")] * 4 + [("main",)] * 4, is_main=True)
        analysis = analyze_js_crypto(make_profile([thread]))

        assert analysis.total_time_ms == 4.0
        assert analysis.total_samples == 4
        assert analysis.cpu_percent == pytest.approx(50.0)
        assert analysis.by_thread == {"GeckoMain": 4.0}
        assert analysis.worker_count == 0
        [res] = analysis.resources
        assert res.name == "decryptBlock.js"
        assert res.url == "https://example.com/decryptBlock.js"
        assert res.thread_name == "GeckoMain"
        [fn] = analysis.top_functions
        assert fn.name == "decryptBlock"
        assert fn.resource == "decryptBlock.js"
        assert fn.percent == 100.0

    def test_script_from_function_name_in_worker(self):
        worker = _without_file_names(thread_dict("DOM Worker", stacks=[(FIREFOX_WORKER_FUNC,)] * 3, tid=7))
        analysis = analyze_js_crypto(make_profile([worker]))

        assert analysis.by_thread == {"DOM Worker (tid:7)": 3.0}
        assert analysis.worker_count == 1
        assert analysis.avg_time_per_worker == 3.0
        [res] = analysis.resources
        assert res.name == "seipdDecryptionWorker.min.js"
        assert res.url == "moz-extension://abc/seipdDecryptionWorker.min.js"

    def test_native_functions_ignored(self):
        thread = thread_dict("GeckoMain", stacks=[("decryptBlock",)] * 4)
        thread['funcTable']['isJS'] = [False]
        assert analyze_js_crypto(make_profile([thread])).total_samples == 0

    def test_non_leaf_crypto_not_counted(self):
        thread = thread_dict("GeckoMain", stacks=[("decryptBlock", "memcpy")] * 4)
        assert analyze_js_crypto(make_profile([thread])).total_time_ms == 0.0

    def test_crypto_named_function_in_crypto_resource(self):
        stacks = [("main", "decryptBlock")] * 2 + [("main", "sign")] * 3
        thread = thread_dict("GeckoMain", stacks=stacks)
        thread['funcTable']['resource'] = [0] * thread['funcTable']['length']
        analysis = analyze_js_crypto(make_profile([thread]))

        assert analysis.total_time_ms == 5.0
        [res] = analysis.resources
        assert res.name == "decryptBlock.js"
        assert res.sample_count == 5
        assert [f.name for f in analysis.top_functions] == ["sign", "decryptBlock"]
        assert [f.percent for f in analysis.top_functions] == pytest.approx([60.0, 40.0])

    def test_same_named_workers_stay_separate(self):
        a = thread_dict("DOM Worker", stacks=[("decryptBlock",)] * 4, tid=2)
        b = thread_dict("DOM Worker", stacks=[("decryptBlock",)] * 3, tid=3)
        analysis = analyze_js_crypto(make_profile([a, b]))
        assert analysis.by_thread == {"DOM Worker (tid:2)": 4.0, "DOM Worker (tid:3)": 3.0}
        assert analysis.worker_count == 2
        assert analysis.avg_time_per_worker == 3.5
        assert analysis.recommendations == []

    def test_json_keys(self):
        worker = thread_dict("DOM Worker", stacks=[("decryptBlock",)] * 2, tid=2)
        data = analyze_js_crypto(make_profile([worker])).to_dict()
        assert data['avg_time_per_worker_ms'] == 2.0
        assert data['resources'][0]['total_time_ms'] == 2.0
        assert data['top_functions'][0]['total_time_ms'] == 2.0


class TestRecommendations:

    def test_significant_overhead(self):
        thread = thread_dict("GeckoMain", stacks=[("decryptBlock",)] * 1100, is_main=True)
        analysis = analyze_js_crypto(make_profile([thread], duration_ms=2000.0))
        assert analysis.recommendations == [
            "Significant JS crypto overhead: 1100.0ms - consider WebCrypto API for heavy operations",
        ]

    def test_single_worker(self):
        worker = thread_dict("DOM Worker", stacks=[("decryptBlock",)] * 600, tid=2)
        analysis = analyze_js_crypto(make_profile([worker]))
        assert analysis.recommendations == [
            "Only 1 crypto worker detected - consider adding more workers for parallelization",
        ]

    def test_uneven_workers(self):
        a = thread_dict("DOM Worker", stacks=[("decryptBlock",)] * 10, tid=2)
        b = thread_dict("DOM Worker", stacks=[("decryptBlock",)] * 2, tid=3)
        analysis = analyze_js_crypto(make_profile([a, b]))
        assert analysis.recommendations == [
            "Uneven work distribution across workers - consider better load balancing",
        ]
