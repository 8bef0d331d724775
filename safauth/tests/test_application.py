"""API tests for the SAF auth service."""

from unittest import TestCase, mock
from http import HTTPStatus
import json

from ..domain import AgentResponse
from ..exceptions import ConfigurationError, TransportFailure
from ..factory import create_app, init_app
from ..services.agent import SecurityAgent, HTTPSecurityAgent

URL = '/ZLUX/plugins/org.zowe.zossystem.subsystems/services/data/_current' \
    '/zosDiscovery'
LOGIN_OK = AgentResponse(200, '{}', ('jedHTTPSession=abc123; Path=/',))
RESTRICTED = {'X-Original-URI': '/saf-auth/FOO/X/READ'}


class TestAuthentication(TestCase):
    """Login, status, refresh and logout."""

    def setUp(self):
        self.agent = mock.MagicMock(spec=SecurityAgent)
        self.app = create_app(self.agent)
        self.client = self.app.test_client()

    def _login(self):
        self.agent.login.return_value = LOGIN_OK
        return self.client.post('/auth', json={'username': 'foo',
                                               'password': 'bar'})

    def test_login(self):
        """A successful login starts a session."""
        response = self._login()
        self.assertEqual(response.status_code, HTTPStatus.OK)
        data = json.loads(response.data)
        self.assertTrue(data['success'])
        self.assertEqual(data['username'], 'FOO')

        response = self.client.get('/auth')
        data = json.loads(response.data)
        self.assertTrue(data['authenticated'])
        self.assertEqual(data['username'], 'FOO')
        self.assertGreater(data['remaining_ms'], 0)

    def test_login_failed(self):
        self.agent.login.return_value = AgentResponse(428)
        response = self.client.post('/auth', json={'username': 'foo',
                                                   'password': 'bar'})
        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)
        data = json.loads(response.data)
        self.assertFalse(data['success'])
        self.assertTrue(data['can_change_password'])

    def test_login_without_credentials(self):
        response = self.client.post('/auth', json={'username': 'foo'})
        self.assertEqual(response.status_code, HTTPStatus.BAD_REQUEST)
        data = json.loads(response.data)
        self.assertIn('reason', data, 'Response includes failure reason')
        self.agent.login.assert_not_called()

    def test_login_with_non_string_username(self):
        response = self.client.post('/auth', json={'username': 123,
                                                   'password': 'bar'})
        self.assertEqual(response.status_code, HTTPStatus.BAD_REQUEST)
        self.assertIn('username', json.loads(response.data)['reason'])
        self.agent.login.assert_not_called()

    def test_status_without_session(self):
        response = self.client.get('/auth')
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertFalse(json.loads(response.data)['authenticated'])

    def test_refresh(self):
        self._login()
        response = self.client.post('/auth/refresh')
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.agent.login.assert_called_with(token='jedHTTPSession=abc123')

    def test_refresh_unreachable(self):
        """The session survives if the agent cannot be reached."""
        self._login()
        self.agent.login.side_effect = TransportFailure('nope')
        response = self.client.post('/auth/refresh')
        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)
        response = self.client.get('/auth')
        self.assertTrue(json.loads(response.data)['authenticated'])

    def test_logout(self):
        self._login()
        self.agent.logout.return_value = AgentResponse(200)
        response = self.client.post('/auth/logout')
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertTrue(json.loads(response.data)['success'])
        response = self.client.get('/auth')
        self.assertFalse(json.loads(response.data)['authenticated'])

    def test_password(self):
        self.agent.reset_password.return_value = AgentResponse(
            200, '{"status": "Password Successfully Changed"}'
        )
        response = self.client.post('/auth/password', json={
            'username': 'foo', 'password': 'bar', 'newPassword': 'baz'
        })
        self.assertEqual(response.status_code, HTTPStatus.OK)
        data = json.loads(response.data)
        self.assertEqual(data['detail'], 'Password Successfully Changed')

    def test_password_rejected(self):
        self.agent.reset_password.return_value = AgentResponse(
            401, '{"status": "Incorrect"}'
        )
        response = self.client.post('/auth/password', json={
            'username': 'foo', 'password': 'bar', 'newPassword': 'baz'
        })
        self.assertEqual(response.status_code, HTTPStatus.BAD_REQUEST)


class TestAuthorize(TestCase):
    """NGINX authorization subrequests."""

    def setUp(self):
        self.agent = mock.MagicMock(spec=SecurityAgent)
        self.app = create_app(self.agent)
        self.client = self.app.test_client()

    def _login(self):
        self.agent.login.return_value = LOGIN_OK
        self.client.post('/auth', json={'username': 'foo',
                                         'password': 'bar'})

    def test_missing_uri(self):
        response = self.client.get('/authorize')
        self.assertEqual(response.status_code, HTTPStatus.BAD_REQUEST)
        data = json.loads(response.data)
        self.assertIn('reason', data, 'Response includes failure reason')

    def test_not_logged_in(self):
        response = self.client.get('/authorize',
                                   headers={'X-Original-URI': URL})
        self.assertEqual(response.status_code, HTTPStatus.UNAUTHORIZED)

    def test_bypass_path(self):
        response = self.client.get('/authorize',
                                   headers={'X-Original-URI': '/login'})
        self.assertEqual(response.status_code, HTTPStatus.OK)

    def test_authorized(self):
        self._login()
        self.agent.check_access.return_value = AgentResponse(
            200, '{"authorized": true}'
        )
        response = self.client.get('/authorize', headers={
            'X-Original-URI': URL, 'X-Original-Method': 'POST'
        })
        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertEqual(response.headers['X-Auth-Username'], 'FOO')
        self.agent.check_access.assert_called_once_with(
            'FOO',
            'ZLUX.DEFAULT.SVC.ORG_ZOWE_ZOSSYSTEM_SUBSYSTEMS.DATA.POST'
            '.ZOSDISCOVERY',
            'READ', 'jedHTTPSession=abc123'
        )

    def test_forbidden(self):
        self._login()
        self.agent.check_access.return_value = AgentResponse(
            200, '{"authorized": false, "message": "no access"}'
        )
        response = self.client.get('/authorize',
                                   headers={'X-Original-URI': URL})
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)
        self.assertEqual(json.loads(response.data)['message'], 'no access')

    def test_restricted_path(self):
        """The agent's own endpoint is only reachable from this host."""
        self._login()
        response = self.client.get(
            '/authorize',
            headers={**RESTRICTED, 'X-Forwarded-For': '127.0.0.1'}
        )
        self.assertEqual(response.status_code, HTTPStatus.OK)

        response = self.client.get(
            '/authorize',
            headers={**RESTRICTED, 'X-Forwarded-For': '10.1.2.3'}
        )
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)

    def test_restricted_path_through_local_proxy(self):
        """A proxy on this host does not make its clients local."""
        self._login()
        response = self.client.get(
            '/authorize',
            headers={**RESTRICTED, 'X-Real-IP': '203.0.113.5',
                     'X-Forwarded-For': '203.0.113.5'},
            environ_base={'REMOTE_ADDR': '127.0.0.1'}
        )
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)
        self.assertFalse(json.loads(response.data)['authorized'])

    def test_restricted_path_spoofed(self):
        """Addresses the client adds before the proxy's are ignored."""
        self._login()
        response = self.client.get(
            '/authorize',
            headers={**RESTRICTED,
                     'X-Forwarded-For': '127.0.0.1, 203.0.113.5'}
        )
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)

    def test_restricted_path_without_client_address(self):
        """A proxied request that does not say who the client is."""
        self._login()
        response = self.client.get('/authorize', headers=RESTRICTED)
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)

    @mock.patch.dict('os.environ', {'PROXY_FIX_HOPS': '0'})
    def test_restricted_path_without_proxy(self):
        """Clients that connect directly are identified by their peer."""
        self.app = create_app(self.agent)
        self.client = self.app.test_client()
        self._login()
        response = self.client.get('/authorize', headers=RESTRICTED)
        self.assertEqual(response.status_code, HTTPStatus.OK)

        response = self.client.get(
            '/authorize',
            headers={**RESTRICTED, 'X-Forwarded-For': '127.0.0.1'},
            environ_base={'REMOTE_ADDR': '10.1.2.3'}
        )
        self.assertEqual(response.status_code, HTTPStatus.FORBIDDEN)


class TestConfiguration(TestCase):
    """Building the service from configuration."""

    def test_http_agent(self):
        app = create_app()
        gate = app.config['safauth.AuthorizationGate']
        self.assertIsInstance(gate.agent, HTTPSecurityAgent)

    def test_bypass_paths_from_config(self):
        app = create_app(mock.MagicMock(spec=SecurityAgent))
        app.config['BYPASS_PATHS'] = '/public, /health'
        init_app(app, mock.MagicMock(spec=SecurityAgent))
        gate = app.config['safauth.AuthorizationGate']
        self.assertEqual(gate.bypass_paths, ('/public', '/health'))

    def test_missing_agent_url(self):
        app = create_app(mock.MagicMock(spec=SecurityAgent))
        app.config['SECURITY_AGENT_URL'] = ''
        with self.assertRaises(ConfigurationError):
            init_app(app)

    def test_bad_lifetime(self):
        app = create_app(mock.MagicMock(spec=SecurityAgent))
        app.config['SESSION_LIFETIME_MS'] = 'an hour'
        with self.assertRaises(ConfigurationError):
            init_app(app, mock.MagicMock(spec=SecurityAgent))

    @mock.patch.dict('os.environ', {'PROXY_FIX_HOPS': 'some'})
    def test_bad_proxy_hops(self):
        with self.assertRaises(ConfigurationError):
            create_app(mock.MagicMock(spec=SecurityAgent))
