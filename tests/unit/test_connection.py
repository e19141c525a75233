"""SessionConnection のユニットテスト"""

import gc
import unittest

import httpx

from fake_appliance import CORE, TARGET, FakeAppliance, connection_refused, json_response
from safeguard.auth import AccessTokenAuthenticator, AnonymousAuthenticator, PasswordAuthenticator
from safeguard.connection import SessionConnection
from safeguard.errors import ArgumentError, DisposedError, ErrorCode, SessionError
from safeguard.events import EventListener, PersistentEventListener
from safeguard.models import FullResponse, Method, Service

LOGOUT = f"{CORE}/Token/Logout"
LOGIN_MESSAGE = f"{CORE}/LoginMessage"


class ConnectionTestCase(unittest.TestCase):
    def setUp(self):
        self.appliance = FakeAppliance()
        self.http = self.appliance.client()

    def tearDown(self):
        self.http.close()

    def connect(self, refresh=True):
        auth = PasswordAuthenticator(TARGET, "admin", "pw", http_client=self.http)
        connection = SessionConnection(auth)
        if refresh:
            connection.refresh_access_token()
        self.appliance.requests.clear()
        return connection


class TestInvokeMethod(ConnectionTestCase):
    def test_get_returns_body(self):
        connection = self.connect()

        body = connection.invoke_method(Service.CORE, Method.GET, "Me")

        self.assertEqual(body, '{"Id": 1, "Name": "admin"}')
        request = self.appliance.last_request()
        self.assertEqual(str(request.url), "https://sg.example.com/service/core/v4/Me")
        self.assertEqual(request.headers["authorization"], "Bearer user-token")
        self.assertEqual(request.headers["accept"], "application/json")
        self.assertNotIn("content-type", request.headers)

    def test_full_response(self):
        self.appliance.route(
            "POST",
            f"{CORE}/Users",
            json_response(201, {"Id": 7}, headers={"Location": "/service/core/v4/Users/7"}),
        )
        connection = self.connect()

        response = connection.invoke_method_full(Service.CORE, Method.POST, "Users", body='{"Name":"bob"}')

        self.assertIsInstance(response, FullResponse)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.headers["location"], "/service/core/v4/Users/7")
        self.assertEqual(response.body, '{"Id": 7}')
        request = self.appliance.last_request()
        self.assertEqual(request.headers["content-type"], "application/json")
        self.assertEqual(request.content, b'{"Name":"bob"}')

    def test_query_parameters_sent(self):
        connection = self.connect()

        connection.invoke_method(Service.CORE, Method.GET, "Me", parameters={"fields": "Id,Name"})

        self.assertEqual(self.appliance.last_request().url.params["fields"], "Id,Name")

    def test_caller_accept_overrides_default(self):
        connection = self.connect()

        connection.invoke_method(Service.CORE, Method.GET, "Me", additional_headers={"accept": "text/plain"})

        request = self.appliance.last_request()
        self.assertEqual(request.headers.get_list("accept"), ["text/plain"])

    def test_caller_content_type_kept(self):
        self.appliance.route("PUT", f"{CORE}/Users/7", json_response(200, {}))
        connection = self.connect()

        connection.invoke_method(
            Service.CORE,
            Method.PUT,
            "Users/7",
            body="<x/>",
            additional_headers={"Content-Type": "application/xml"},
        )

        self.assertEqual(self.appliance.last_request().headers["content-type"], "application/xml")

    def test_csv_forces_accept(self):
        self.appliance.route("GET", f"{CORE}/Users", httpx.Response(200, text="Id,Name\n1,admin\n"))
        connection = self.connect()
        caller_headers = {"ACCEPT": "application/json", "X-Trace": "1"}

        body = connection.invoke_method_csv(Service.CORE, Method.GET, "Users", additional_headers=caller_headers)

        self.assertEqual(body, "Id,Name\n1,admin\n")
        request = self.appliance.last_request()
        self.assertEqual(request.headers.get_list("accept"), ["text/csv"])
        self.assertEqual(request.headers["x-trace"], "1")
        self.assertEqual(caller_headers, {"ACCEPT": "application/json", "X-Trace": "1"})

    def test_appliance_and_notification_services(self):
        self.appliance.route("GET", "/service/appliance/v4/ApplianceStatus", json_response(200, {}))
        self.appliance.route("GET", "/service/notification/v4/Status", json_response(200, {}))
        connection = self.connect()

        connection.invoke_method(Service.APPLIANCE, Method.GET, "ApplianceStatus")
        connection.invoke_method(Service.NOTIFICATION, Method.GET, "Status")

        self.assertEqual(
            self.appliance.calls(),
            [
                ("GET", "/service/appliance/v4/ApplianceStatus"),
                ("GET", "/service/notification/v4/Status"),
            ],
        )

    def test_a2a_rejected(self):
        connection = self.connect()

        with self.assertRaises(SessionError) as ctx:
            connection.invoke_method(Service.A2A, Method.GET, "Credentials")

        self.assertEqual(ctx.exception.error.code, ErrorCode.SESSION_UNSUPPORTED_SERVICE.value)
        self.assertIn("A2A specific method", str(ctx.exception))
        self.assertEqual(self.appliance.requests, [])

    def test_a2a_rejected_without_token(self):
        connection = self.connect(refresh=False)

        with self.assertRaises(SessionError) as ctx:
            connection.invoke_method(Service.A2A, Method.GET, "Credentials")
        self.assertEqual(ctx.exception.error.code, ErrorCode.SESSION_UNSUPPORTED_SERVICE.value)

    def test_empty_relative_url_rejected(self):
        connection = self.connect()

        with self.assertRaises(ArgumentError):
            connection.invoke_method(Service.CORE, Method.GET, "")
        self.assertEqual(self.appliance.requests, [])

    def test_missing_token_rejected(self):
        connection = self.connect(refresh=False)

        with self.assertRaises(SessionError) as ctx:
            connection.invoke_method(Service.CORE, Method.GET, "Me")

        self.assertIn("missing access token", str(ctx.exception))
        self.assertEqual(self.appliance.requests, [])

    def test_non_success_status_raises(self):
        self.appliance.route("GET", f"{CORE}/Users/99", httpx.Response(404, text='{"Message":"not found"}'))
        connection = self.connect()

        with self.assertRaises(SessionError) as ctx:
            connection.invoke_method(Service.CORE, Method.GET, "Users/99")

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIn("error returned from Safeguard API, Error: 404", str(ctx.exception))
        self.assertIn("not found", str(ctx.exception))

    def test_unreachable_server_raises(self):
        self.appliance.route("GET", f"{CORE}/Me", connection_refused)
        connection = self.connect()

        with self.assertRaises(SessionError) as ctx:
            connection.invoke_method(Service.CORE, Method.GET, "Me")

        self.assertEqual(ctx.exception.error.code, ErrorCode.SESSION_CONNECT_FAILED.value)
        self.assertIsNone(ctx.exception.status_code)

    def test_undecodable_response_raises_session_error(self):
        self.appliance.route(
            "GET",
            f"{CORE}/Me",
            lambda request: httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"notgzip")
            ),
        )
        connection = self.connect()

        with self.assertRaises(SessionError) as ctx:
            connection.invoke_method(Service.CORE, Method.GET, "Me")

        self.assertEqual(ctx.exception.error.code, ErrorCode.SESSION_CONNECT_FAILED.value)

    def test_anonymous_sends_no_authorization(self):
        self.appliance.route("GET", "/service/notification/v4/Status", json_response(200, {"Ok": True}))
        connection = SessionConnection(AnonymousAuthenticator(TARGET, http_client=self.http))

        connection.invoke_method(Service.NOTIFICATION, Method.GET, "Status")

        self.assertNotIn("authorization", self.appliance.last_request().headers)

    def test_token_never_logged(self):
        connection = self.connect()

        with self.assertLogs("safeguard", level="DEBUG") as logs:
            connection.invoke_method(Service.CORE, Method.GET, "Me", parameters={"filter": "secret-value"})

        output = "\n".join(logs.output)
        self.assertIn("Authorization", output)
        self.assertNotIn("user-token", output)
        self.assertNotIn("secret-value", output)


class TestSessionLifecycle(ConnectionTestCase):
    def test_lifetime_and_refresh(self):
        connection = self.connect()

        self.assertEqual(connection.get_access_token_lifetime_remaining(), 540)
        connection.refresh_access_token()
        self.assertTrue(connection.authenticator.has_access_token())

    def test_log_out_clears_token(self):
        connection = self.connect()

        connection.log_out()

        self.assertEqual(self.appliance.calls(), [("POST", LOGOUT)])
        self.assertEqual(self.appliance.last_request().headers["authorization"], "Bearer user-token")
        self.assertFalse(connection.authenticator.has_access_token())
        self.assertEqual(connection.get_access_token_lifetime_remaining(), 0)

    def test_log_out_without_token_sends_nothing(self):
        connection = self.connect(refresh=False)

        connection.log_out()

        self.assertEqual(self.appliance.requests, [])

    def test_log_out_failure_still_clears_token(self):
        self.appliance.route("POST", LOGOUT, connection_refused)
        connection = self.connect()

        connection.log_out()

        self.assertFalse(connection.authenticator.has_access_token())

    def test_log_out_error_status_still_clears_token(self):
        self.appliance.route("POST", LOGOUT, httpx.Response(500, text="oops"))
        connection = self.connect()

        connection.log_out()

        self.assertFalse(connection.authenticator.has_access_token())

    def test_refresh_after_log_out(self):
        connection = self.connect()
        connection.log_out()

        connection.refresh_access_token()

        self.assertTrue(connection.authenticator.has_access_token())

    def test_dispose_is_idempotent_and_blocks_use(self):
        connection = self.connect()
        authenticator = connection.authenticator

        connection.dispose()
        connection.dispose()

        self.assertTrue(connection.disposed)
        self.assertTrue(authenticator.disposed)
        for call in (
            lambda: connection.invoke_method(Service.CORE, Method.GET, "Me"),
            lambda: connection.invoke_method_csv(Service.CORE, Method.GET, "Me"),
            lambda: connection.get_access_token_lifetime_remaining(),
            lambda: connection.refresh_access_token(),
            lambda: connection.log_out(),
            lambda: connection.get_event_listener(),
            lambda: connection.clone(),
        ):
            with self.assertRaises(DisposedError):
                call()
        self.assertEqual(self.appliance.requests, [])

    def test_garbage_collection_wipes_secrets(self):
        """dispose を呼ばずに手放してもトークンとパスワードはゼロ埋めされる"""
        connection = self.connect()
        token_raw = connection.authenticator.get_access_token()._data
        password_raw = connection.authenticator._password._data

        del connection
        gc.collect()

        self.assertEqual(bytes(token_raw), b"\x00" * len("user-token"))
        self.assertEqual(bytes(password_raw), b"\x00\x00")

    def test_context_manager_disposes(self):
        with self.connect() as connection:
            connection.invoke_method(Service.CORE, Method.GET, "Me")
        self.assertTrue(connection.disposed)

    def test_clone_is_independent(self):
        connection = self.connect()
        clone = connection.clone()

        connection.log_out()

        self.assertTrue(clone.authenticator.has_access_token())
        clone.invoke_method(Service.CORE, Method.GET, "Me")
        self.assertEqual(self.appliance.last_request().headers["authorization"], "Bearer user-token")


class TestEventListeners(ConnectionTestCase):
    def test_event_listener_carries_copy_of_token(self):
        connection = self.connect()

        listener = connection.get_event_listener()
        connection.log_out()

        self.assertIsInstance(listener, EventListener)
        self.assertEqual(listener.event_url, "https://sg.example.com/service/event")
        self.assertTrue(listener.verify)
        self.assertEqual(listener.access_token.reveal(), "user-token")
        self.assertNotIn("user-token", repr(listener))

    def test_persistent_listener_survives_log_out(self):
        connection = self.connect()

        persistent = connection.get_persistent_event_listener()
        connection.log_out()
        listener = persistent.current_listener()

        self.assertIsInstance(persistent, PersistentEventListener)
        self.assertIsNot(persistent.connection, connection)
        self.assertEqual(listener.access_token.reveal(), "user-token")

    def test_persistent_listener_refreshes_expired_token(self):
        connection = self.connect()
        persistent = connection.get_persistent_event_listener()
        self.appliance.route("GET", LOGIN_MESSAGE, httpx.Response(401, text="expired"))

        persistent.current_listener()

        self.assertIn(("POST", f"{CORE}/Token/LoginResponse"), self.appliance.calls())

    def test_persistent_listener_rejected_for_anonymous(self):
        connection = SessionConnection(AnonymousAuthenticator(TARGET, http_client=self.http))

        with self.assertRaises(SessionError) as ctx:
            connection.get_persistent_event_listener()
        self.assertIn("AnonymousAuthenticator", str(ctx.exception))

    def test_persistent_listener_rejected_for_access_token(self):
        connection = SessionConnection(AccessTokenAuthenticator(TARGET, "pre-issued", http_client=self.http))

        with self.assertRaises(SessionError):
            connection.get_persistent_event_listener()


if __name__ == "__main__":
    unittest.main()
