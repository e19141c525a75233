"""RestClient のユニットテスト"""

import ssl
import unittest
from unittest.mock import patch

import httpx

from fake_appliance import connection_refused
from safeguard import transport
from safeguard.models import Method
from safeguard.transport import RestClient, create_ssl_context


class TestRestClient(unittest.TestCase):
    def setUp(self):
        self.requests = []

        def handler(request):
            self.requests.append(request)
            return httpx.Response(200, text="ok")

        self.http = httpx.Client(transport=httpx.MockTransport(handler))
        self.addCleanup(self.http.close)

    def test_url_for_joins_without_double_slash(self):
        client = RestClient("https://sg.example.com/service/core/v4/", client=self.http)
        self.assertEqual(client.url_for("/Users"), "https://sg.example.com/service/core/v4/Users")
        self.assertEqual(client.url_for("Users"), "https://sg.example.com/service/core/v4/Users")

    def test_execute_sends_method_params_headers_and_body(self):
        client = RestClient("https://sg.example.com/service/core/v4", client=self.http)

        response = client.execute(Method.PUT, "Users/1", {"fields": "Id"}, {"X-Test": "1"}, "{}")

        self.assertEqual(response.status_code, 200)
        request = self.requests[-1]
        self.assertEqual(request.method, "PUT")
        self.assertEqual(request.url.params["fields"], "Id")
        self.assertEqual(request.headers["x-test"], "1")
        self.assertEqual(request.content, b"{}")

    def test_transport_error_returns_none(self):
        http = httpx.Client(transport=httpx.MockTransport(connection_refused))
        self.addCleanup(http.close)
        client = RestClient("https://sg.example.com/RSTS", client=http)

        with self.assertLogs("safeguard.transport", level="WARNING"):
            self.assertIsNone(client.get("oauth2/token"))

    def test_decoding_error_returns_none(self):
        def handler(request):
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"notgzip"))

        http = httpx.Client(transport=httpx.MockTransport(handler))
        self.addCleanup(http.close)
        client = RestClient("https://sg.example.com/service/core/v4", client=http)

        with self.assertLogs("safeguard.transport", level="WARNING"):
            self.assertIsNone(client.get("Me"))

    def test_default_logger_is_module_logger(self):
        client = RestClient("https://sg.example.com/RSTS", client=self.http)
        self.assertIs(client._logger, transport.LOGGER)

    def test_injected_client_is_not_closed(self):
        client = RestClient("https://sg.example.com/RSTS", client=self.http)
        client.close()
        self.assertFalse(self.http.is_closed)

    def test_owned_client_is_closed(self):
        with RestClient("https://sg.example.com/RSTS") as client:
            inner = client._client
        self.assertTrue(inner.is_closed)


class TestCreateSslContext(unittest.TestCase):
    """クライアント証明書付きTLSコンテキストの組み立て"""

    @patch("safeguard.transport.ssl.create_default_context")
    def test_loads_certificate_and_key(self, factory):
        context = create_ssl_context(True, ("client.pem", "client.key"))

        self.assertIs(context, factory.return_value)
        context.load_cert_chain.assert_called_once_with("client.pem", "client.key")

    @patch("safeguard.transport.ssl.create_default_context")
    def test_combined_certificate_file(self, factory):
        context = create_ssl_context(True, "combined.pem")
        context.load_cert_chain.assert_called_once_with("combined.pem")

    @patch("safeguard.transport.ssl.create_default_context")
    def test_ignore_ssl_disables_verification(self, factory):
        context = create_ssl_context(False, "combined.pem")

        self.assertFalse(context.check_hostname)
        self.assertEqual(context.verify_mode, ssl.CERT_NONE)

    @patch("safeguard.transport.httpx.Client")
    @patch("safeguard.transport.create_ssl_context")
    def test_owned_client_receives_context_instead_of_cert(self, build, client_cls):
        RestClient("https://sg.example.com/RSTS", verify=False, cert=("client.pem", "client.key"))

        build.assert_called_once_with(False, ("client.pem", "client.key"))
        kwargs = client_cls.call_args.kwargs
        self.assertIs(kwargs["verify"], build.return_value)
        self.assertNotIn("cert", kwargs)


if __name__ == "__main__":
    unittest.main()
