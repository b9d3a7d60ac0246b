"""Tests for the requests-based remote stream opener."""

from unittest.mock import Mock, patch

import pytest
import requests
import urllib3
from mocks.remote import FakeRaw

from regionfetch.error_handling import TransportError
from regionfetch.transport import RemoteStream, open_remote_stream

URL = "https://example.org/chr1.vcf.bgz"


def fake_response(data=b"", status=200, headers=None):
    response = Mock()
    response.status_code = status
    response.headers = headers if headers is not None else {"Content-Length": str(len(data))}
    response.raw = FakeRaw(data)
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Client Error")
    return response


class TestOpenRemoteStream:
    @patch("regionfetch.transport.requests.get")
    def test_streams_raw_body(self, mock_get):
        mock_get.return_value = fake_response(b"\x1f\x8bcompressed")

        stream = open_remote_stream(URL, connect_timeout=12)

        mock_get.assert_called_once_with(URL, stream=True, timeout=(12, None))
        assert stream.content_length == 12
        assert stream.read(4) == b"\x1f\x8bco"
        assert stream.read() == b"mpressed"
        assert stream.read() == b""

    @patch("regionfetch.transport.requests.get")
    def test_missing_content_length(self, mock_get):
        mock_get.return_value = fake_response(b"abc", headers={})
        assert open_remote_stream(URL).content_length is None

    @patch("regionfetch.transport.requests.get")
    def test_invalid_content_length(self, mock_get):
        mock_get.return_value = fake_response(b"abc", headers={"Content-Length": "lots"})
        assert open_remote_stream(URL).content_length is None

    @patch("regionfetch.transport.requests.get")
    def test_http_error_status(self, mock_get):
        response = fake_response(status=404)
        mock_get.return_value = response

        with pytest.raises(TransportError, match="404") as exc_info:
            open_remote_stream(URL)

        assert exc_info.value.url == URL
        response.close.assert_called_once()

    @patch("regionfetch.transport.requests.get")
    def test_connection_refused(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(TransportError, match="connection refused"):
            open_remote_stream(URL)

    @patch("regionfetch.transport.requests.get")
    def test_connect_timeout(self, mock_get):
        mock_get.side_effect = requests.ConnectTimeout("timed out")
        with pytest.raises(TransportError, match="timed out"):
            open_remote_stream(URL, connect_timeout=0.1)

    @patch("regionfetch.transport.requests.get")
    def test_close_closes_response(self, mock_get):
        response = fake_response(b"abc")
        mock_get.return_value = response

        with open_remote_stream(URL):
            pass

        response.close.assert_called_once()


class TestRemoteStream:
    def test_mid_stream_urllib3_error_becomes_transport_error(self):
        reader = Mock()
        reader.read.side_effect = urllib3.exceptions.ProtocolError("Connection broken")

        stream = RemoteStream(reader, URL)

        with pytest.raises(TransportError, match="stream interrupted"):
            stream.read(10)

    def test_other_errors_propagate_unchanged(self):
        reader = Mock()
        reader.read.side_effect = OSError("disk on fire")

        with pytest.raises(OSError, match="disk on fire"):
            RemoteStream(reader, URL).read(10)
