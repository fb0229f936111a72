"""Tests for the command line shell in run.py."""

from __future__ import annotations

import io
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

import run
from bindings.kv.binding import KvBinding
from lib.kv_client import KvError

from fakes import FakeKvClient


class TestCli(unittest.TestCase):
    def setUp(self):
        self.fake = FakeKvClient()
        fake = self.fake

        def factory(host, port):
            # Each CLI invocation closes its client; reuse the same store
            fake.closed = False
            return fake

        class _Binding(KvBinding):
            def __init__(self, properties=None):
                super().__init__(properties, client_factory=factory)

        patcher = mock.patch.object(run, "get_bindings", return_value={"kv": _Binding})
        patcher.start()
        self.addCleanup(patcher.stop)

    def _run(self, *argv: str) -> tuple[str, int]:
        out = io.StringIO()
        code = 0
        with redirect_stdout(out), redirect_stderr(io.StringIO()):
            try:
                run.main(list(argv))
            except SystemExit as e:
                code = e.code or 0
        return out.getvalue(), code

    def test_insert_then_read(self):
        out, code = self._run("insert", "user1", "field0=a", "field1=b")
        self.assertEqual(code, 0)
        self.assertIn("Return code: 0", out)

        out, code = self._run("read", "user1")
        self.assertEqual(code, 0)
        self.assertIn("field0=a", out)
        self.assertIn("field1=b", out)

    def test_read_selected_field(self):
        self._run("insert", "user1", "field0=a", "field1=b")
        out, _ = self._run("read", "user1", "field1")
        self.assertIn("field1=b", out)
        self.assertNotIn("field0", out)

    def test_read_missing_exits_nonzero(self):
        out, code = self._run("read", "user9")
        self.assertIn("Return code: 1", out)
        self.assertEqual(code, 1)

    def test_update_uses_table_option(self):
        self._run("--table", "other", "update", "user1", "f=v")
        self.assertIn("user1", self.fake.tables["other"])

    def test_delete(self):
        self._run("insert", "user1", "f=v")
        out, code = self._run("delete", "user1")
        self.assertEqual(code, 0)
        self.assertNotIn("user1", self.fake.tables["usertable"])

    def test_scan_disabled(self):
        self._run("insert", "user1", "f=v")
        out, code = self._run("scan", "user1", "5")
        self.assertEqual(code, 0)
        self.assertIn("0 records", out)

    def test_scan_enabled(self):
        for i in range(3):
            self._run("-p", "scan-enabled=true", "insert", f"user{i}", f"f=v{i}")
        out, code = self._run("-p", "scan-enabled=true", "scan", "user1", "2")
        self.assertEqual(code, 0)
        self.assertIn("Record 0", out)
        self.assertIn("f=v1", out)
        self.assertIn("f=v2", out)
        self.assertNotIn("f=v0", out)

    def test_bad_key_in_scan_mode(self):
        out, code = self._run("-p", "scan-enabled=true", "insert", "user-x", "f=v")
        self.assertIn("Return code: -1", out)
        self.assertEqual(code, 1)

    def test_ping(self):
        out, code = self._run("ping")
        self.assertEqual(code, 0)
        self.assertIn("OK", out)
        self.assertTrue(self.fake.closed)

    def test_malformed_value_exits(self):
        _, code = self._run("insert", "user1", "novalue")
        self.assertEqual(code, 1)

    def test_malformed_property_exits(self):
        _, code = self._run("-p", "port", "ping")
        self.assertEqual(code, 1)

    def test_unknown_binding_exits(self):
        _, code = self._run("--binding", "nope", "ping")
        self.assertEqual(code, 1)

    def test_init_failure_exits(self):
        _, code = self._run("-p", "port=notanumber", "ping")
        self.assertEqual(code, 1)

    def test_no_command_prints_help(self):
        out, code = self._run()
        self.assertEqual(code, 0)
        self.assertIn("usage", out.lower())


class TestCliConnectFailure(unittest.TestCase):
    def test_connect_failure_exits(self):
        def factory(host, port):
            raise KvError("refused")

        class _Binding(KvBinding):
            def __init__(self, properties=None):
                super().__init__(properties, client_factory=factory)

        err = io.StringIO()
        with mock.patch.object(run, "get_bindings", return_value={"kv": _Binding}), \
                redirect_stdout(io.StringIO()), redirect_stderr(err):
            with self.assertRaises(SystemExit) as ctx:
                run.main(["ping"])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("refused", err.getvalue())


if __name__ == "__main__":
    unittest.main()
