"""Stand-ins for java tools and the GitHub API used across the tests."""

from __future__ import annotations

import os
import threading
from typing import Dict, List, Optional

import requests

from apk_workbench.core.models import ExitOutcome

JAVA_BANNER = 'openjdk version "17.0.9" 2023-10-17'


class FakeRunner:
    """Pretends to be java running apktool / uber-apk-signer.

    `exit_codes` maps an action (java-version, version, decompile, build,
    sign) to the exit code to return. Successful decompile/build/sign calls
    leave the files the real tools would.
    """

    def __init__(self, exit_codes: Optional[Dict[str, int]] = None, output_lines: int = 30):
        self.exit_codes = dict(exit_codes or {})
        self.output_lines = output_lines
        self.calls: List[tuple] = []
        self.build_artifact = True
        self.sign_artifact = True
        self.timed_out = set()
        self.gate: Optional[threading.Event] = None
        self.entered = threading.Event()

    def run(self, executable, args, working_dir=None, on_output_line=None, on_error_line=None, timeout=None):
        args = list(args)
        action = self.action(args)
        self.calls.append((action, executable, args, working_dir))
        out = on_output_line or (lambda line: None)
        err = on_error_line or (lambda line: None)

        if action in self.timed_out:
            return ExitOutcome(exit_code=-9, completed=False)
        code = self.exit_codes.get(action, 0)

        if action == "java-version":
            err(JAVA_BANNER)
        elif action == "version":
            out("2.9.3")
        elif action == "decompile":
            self.entered.set()
            if self.gate is not None:
                self.gate.wait(10)
            target = args[args.index("-o") + 1]
            for i in range(self.output_lines):
                out(f"I: Decoding file {i}")
            err("W: Could not decode attr value")
            if code == 0:
                os.makedirs(os.path.join(target, "smali"), exist_ok=True)
                with open(os.path.join(target, "apktool.yml"), "w") as f:
                    f.write("version: 2.9.3\n")
        elif action == "build":
            target = args[args.index("-o") + 1]
            out("I: Building resources...")
            if code == 0 and self.build_artifact:
                with open(target, "wb") as f:
                    f.write(b"PK\x03\x04rebuilt")
        elif action == "sign":
            apk = args[args.index("--apks") + 1]
            err("verify: ok")
            if code == 0 and self.sign_artifact:
                signed = os.path.splitext(apk)[0] + "_signed.apk"
                with open(signed, "wb") as f:
                    f.write(b"PK\x03\x04signed")
        return ExitOutcome(exit_code=code)

    @staticmethod
    def action(args) -> str:
        if args[:1] == ["-version"]:
            return "java-version"
        rest = args[2:] if args[:1] == ["-jar"] else args
        if rest[:1] == ["d"]:
            return "decompile"
        if rest[:1] == ["b"]:
            return "build"
        if rest[:1] == ["--apks"]:
            return "sign"
        if rest[:1] == ["--version"]:
            return "version"
        return "unknown"

    def actions(self) -> List[str]:
        return [c[0] for c in self.calls]


class FakeResponse:

    def __init__(self, status_code=200, json_data=None, body=b"", content_length=True, fail_after=None):
        self.status_code = status_code
        self._json = json_data
        self._body = body
        self._fail_after = fail_after
        self.headers = {"Content-Length": str(len(body))} if content_length and body else {}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._body), chunk_size):
            if self._fail_after is not None and i >= self._fail_after:
                raise requests.ConnectionError("connection reset")
            yield self._body[i:i + chunk_size]


class FakeSession:
    """Maps URLs to FakeResponse objects (or exceptions to raise)."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.headers: Dict[str, str] = {}
        self.requested: List[str] = []
        self.request_headers: Dict[str, dict] = {}
        self.closed = False

    def get(self, url, stream=False, timeout=None, headers=None):
        self.requested.append(url)
        self.request_headers[url] = dict(headers or {})
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(route, Exception):
            raise route
        return route

    def close(self):
        self.closed = True


def release(tag, *asset_names, base="https://example.invalid/download"):
    return {
        "tag_name": tag,
        "name": tag,
        "prerelease": False,
        "assets": [
            {"name": n, "browser_download_url": f"{base}/{n}", "size": 10} for n in asset_names
        ],
    }


def read_log(sink) -> str:
    """Close the sink so everything is flushed, then return the file contents."""
    sink.close()
    if not os.path.exists(sink.path):
        return ""
    with open(sink.path, encoding="utf-8") as f:
        return f.read()
