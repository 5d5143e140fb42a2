import io
import shlex
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest import mock

import pytest

from falcout import outputs as outputs_module
from falcout.logger import LogPriority, default_logger
from falcout.outputs import (
    FileOutput,
    HttpOutput,
    Message,
    OutputConfig,
    OutputError,
    Priority,
    ProgramOutput,
    StdoutOutput,
    SyslogOutput,
)


def test_priority_label_and_values_follow_syslog():
    assert Priority["CRITICAL"].label == "Critical"
    assert Priority(int(LogPriority.ERR)) is Priority.ERROR
    assert Priority(int(LogPriority.DEBUG)) is Priority.DEBUG


def test_message_defaults_are_independent():
    a = Message()
    b = Message()
    a.tags.add("x")
    a.fields["k"] = "v"
    assert b.tags == set()
    assert b.fields == {}
    assert a.priority == Priority.EMERGENCY


def test_output_name_comes_from_config():
    out = StdoutOutput(OutputConfig("stdout"))
    assert out.name == "stdout"


def test_file_output_appends_lines(tmp_path):
    path = tmp_path / "events.txt"
    out = FileOutput(OutputConfig("file", {"filename": str(path)}))
    out.output(Message(msg="first"))
    out.output(Message(msg="second"))
    assert path.read_text().splitlines() == ["first", "second"]


def test_file_output_appends_to_existing_content(tmp_path):
    path = tmp_path / "events.txt"
    path.write_text("old\n")
    out = FileOutput(OutputConfig("file", {"filename": str(path)}), buffered=False)
    out.output(Message(msg="new"))
    assert path.read_text().splitlines() == ["old", "new"]


def test_file_output_keep_alive_holds_until_cleanup(tmp_path):
    path = tmp_path / "events.txt"
    out = FileOutput(
        OutputConfig("file", {"filename": str(path), "keep_alive": "true"})
    )
    out.output(Message(msg="one"))
    out.output(Message(msg="two"))
    out.cleanup()
    assert path.read_text().splitlines() == ["one", "two"]


def test_file_output_reopen_keeps_writing(tmp_path):
    path = tmp_path / "events.txt"
    out = FileOutput(
        OutputConfig("file", {"filename": str(path), "keep_alive": "true"}),
        buffered=False,
    )
    out.output(Message(msg="before"))
    out.reopen()
    out.output(Message(msg="after"))
    out.cleanup()
    assert path.read_text().splitlines() == ["before", "after"]


def test_file_output_open_failure_raises(tmp_path):
    out = FileOutput(OutputConfig("file", {"filename": str(tmp_path)}))
    with pytest.raises(OutputError, match="failed to open output file"):
        out.output(Message(msg="x"))


def test_program_output_pipes_lines(tmp_path):
    path = tmp_path / "piped.txt"
    cmd = f"cat >> {shlex.quote(str(path))}"
    out = ProgramOutput(OutputConfig("program", {"program": cmd}))
    out.output(Message(msg="alpha"))
    out.output(Message(msg="beta"))
    assert out.name == "program"
    assert path.read_text().splitlines() == ["alpha", "beta"]


def test_program_output_keep_alive_flushes_on_cleanup(tmp_path):
    path = tmp_path / "piped.txt"
    cmd = f"cat >> {shlex.quote(str(path))}"
    out = ProgramOutput(
        OutputConfig("program", {"program": cmd, "keep_alive": "true"}),
        buffered=False,
    )
    out.output(Message(msg="alpha"))
    out.output(Message(msg="beta"))
    out.cleanup()
    assert out.name == "program"
    assert path.read_text().splitlines() == ["alpha", "beta"]


def test_stdout_output_writes_line(capsys):
    out = StdoutOutput(OutputConfig("stdout"), buffered=False)
    out.output(Message(msg="hello"))
    out.cleanup()
    assert capsys.readouterr().out == "hello\n"


def test_syslog_output_uses_message_priority():
    out = SyslogOutput(OutputConfig("syslog"))
    with mock.patch.object(outputs_module, "syslog") as fake_syslog:
        out.output(Message(priority=Priority.WARNING, msg="alert text"))
    assert out.name == "syslog"
    assert fake_syslog.syslog.call_args_list == [
        mock.call(int(Priority.WARNING), "alert text")
    ]


class _Recorder(BaseHTTPRequestHandler):
    received = []

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length)
        self.received.append((self.headers.get("Content-Type"),
                              self.headers.get("User-Agent"), body))
        self.send_response(200)
        self.end_headers()

    def log_message(self, *args):
        pass


@pytest.fixture
def http_server():
    _Recorder.received = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Recorder)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.mark.parametrize(
    "json_output, content_type",
    [(True, "application/json"), (False, "text/plain")],
)
def test_http_output_posts_body(http_server, json_output, content_type):
    url = f"http://127.0.0.1:{http_server.server_address[1]}/"
    out = HttpOutput(
        OutputConfig("http", {"url": url, "user_agent": "falcout-test"}),
        json_output=json_output,
    )
    out.output(Message(msg='{"a": 1}'))
    assert out.name == "http"
    assert _Recorder.received == [(content_type, "falcout-test", b'{"a": 1}')]


def test_http_output_logs_bad_url(monkeypatch):
    buf = io.StringIO()
    monkeypatch.setattr(default_logger, "stream", buf)
    monkeypatch.setattr(default_logger, "log_syslog", False)
    monkeypatch.setattr(default_logger, "log_stderr", True)
    out = HttpOutput(OutputConfig("http", {"url": ""}))
    out.output(Message(msg="x"))
    assert out.name == "http"
    assert "http output error" in buf.getvalue()