"""Tests for random_number/edge.py

HttpEdgeClient is exercised against a mocked transport standing in for the
runtime's local HTTP API.
"""
# pylint: disable=missing-function-docstring

import json
from pathlib import Path
import tempfile
from typing import Callable, Dict, List, Tuple
import unittest
from unittest import TestCase
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from random_number.authenticator import Authenticator
from random_number.config import RANDOM_NUMBER_SERVICE, RuntimeSettings
from random_number.deployer import Deployer
from random_number.edge import HttpEdgeClient
from random_number.errors import DeployFailed, EdgeClientError, ExchangeFailed
from random_number.models import AccessToken, DeployPolicy, ServiceHandle

from tests.unit.helpers import async_test
from tests.unit.helpers.factories import RANDOM_NUMBER_HANDLE


TOKEN = AccessToken(value='xyz')

Route = Callable[[httpx.Request], httpx.Response]


class EdgeTestCase(TestCase):
    """Routes requests by method & path to per-test responses."""

    routes: Dict[Tuple[str, str], Route]
    requests: List[httpx.Request]

    def setUp(self) -> None:
        self.routes = {}
        self.requests = []

    def route(self, method: str, path: str, route: Route) -> None:
        self.routes[(method, path)] = route

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))

        if route is None:
            return httpx.Response(404)

        return route(request)

    def build(self, **settings: object) -> HttpEdgeClient:
        return HttpEdgeClient(
            RuntimeSettings(startup_check_delay=0, **settings),
            transport=httpx.MockTransport(self.handler))


class TestConnection(EdgeTestCase):
    """Tests for connect, disconnect, & use before connecting."""

    @async_test
    async def test_use_before_connect_is_edge_client_error(self) -> None:
        with self.assertRaises(EdgeClientError):
            await self.build().exchange_token('abc123')

    def test_service_address_drops_trailing_slash(self) -> None:
        edge = self.build(url='http://localhost:8083/')

        self.assertEqual(edge.service_address(), 'http://localhost:8083')


class TestStartEnvironment(EdgeTestCase):
    """Tests for HttpEdgeClient.start_environment."""

    @async_test
    async def test_already_running_runtime_is_not_launched(self) -> None:
        self.route('GET', '/healthcheck', lambda _: httpx.Response(200))
        edge = self.build(command=['mimoe'])

        with patch('asyncio.create_subprocess_exec',
                   new=AsyncMock()) as launch:
            await edge.connect()
            await edge.start_environment('license')
            await edge.disconnect()

        launch.assert_not_called()

    @async_test
    async def test_down_runtime_without_command_is_error(self) -> None:
        edge = self.build()
        await edge.connect()

        with self.assertRaises(EdgeClientError):
            await edge.start_environment('license')

        await edge.disconnect()

    @async_test
    async def test_launches_command_with_license_until_healthy(self) -> None:
        statuses = [503, 503, 200]
        self.route(
            'GET', '/healthcheck',
            lambda _: httpx.Response(statuses.pop(0)))
        process = MagicMock(returncode=None)
        process.wait = AsyncMock(return_value=0)
        edge = self.build(command=['mimoe', '--port', '8083'])

        with patch('asyncio.create_subprocess_exec',
                   new=AsyncMock(return_value=process)) as launch:
            await edge.connect()
            await edge.start_environment('license')

        args, kwargs = launch.call_args
        self.assertEqual(args, ('mimoe', '--port', '8083'))
        self.assertEqual(kwargs['env']['EDGE_LICENSE'], 'license')

        await edge.disconnect()
        process.terminate.assert_called_once()

    @async_test
    async def test_runtime_exiting_during_startup_is_error(self) -> None:
        self.route('GET', '/healthcheck', lambda _: httpx.Response(503))
        process = MagicMock(returncode=1)
        edge = self.build(command=['mimoe'])

        with patch('asyncio.create_subprocess_exec',
                   new=AsyncMock(return_value=process)):
            await edge.connect()
            with self.assertRaises(EdgeClientError):
                await edge.start_environment('license')

        await edge.disconnect()

    @async_test
    async def test_never_healthy_is_error(self) -> None:
        self.route('GET', '/healthcheck', lambda _: httpx.Response(503))
        process = MagicMock(returncode=None)
        process.wait = AsyncMock(return_value=0)
        edge = self.build(command=['mimoe'], startup_checks=3)

        with patch('asyncio.create_subprocess_exec',
                   new=AsyncMock(return_value=process)):
            await edge.connect()
            with self.assertRaises(EdgeClientError):
                await edge.start_environment('license')

        await edge.disconnect()
        # one check before launching plus three after
        self.assertEqual(len(self.requests), 4)


class TestExchangeToken(EdgeTestCase):
    """Tests for HttpEdgeClient.exchange_token."""

    @async_test
    async def test_posts_id_token_and_reads_access_token(self) -> None:
        self.route('POST', '/mID/v1/oauth/token', lambda _: httpx.Response(
            200, json={'access_token': 'xyz', 'expires_in': 3600}))
        edge = self.build()
        await edge.connect()

        authorization = await edge.exchange_token('abc123')
        await edge.disconnect()

        self.assertEqual(authorization.token, 'xyz')
        self.assertEqual(authorization.expires_in, 3600)
        body = self.requests[0].content.decode()
        self.assertIn('id_token=abc123', body)
        self.assertIn('grant_type=id_token_signin', body)

    @async_test
    async def test_response_without_token_has_none(self) -> None:
        self.route('POST', '/mID/v1/oauth/token',
                   lambda _: httpx.Response(200, json={}))
        edge = self.build()
        await edge.connect()

        authorization = await edge.exchange_token('abc123')
        await edge.disconnect()

        self.assertIsNone(authorization.token)

    @async_test
    async def test_rejected_exchange_is_error(self) -> None:
        self.route('POST', '/mID/v1/oauth/token',
                   lambda _: httpx.Response(401, json={'error': 'nope'}))
        edge = self.build()
        await edge.connect()

        with self.assertRaises(EdgeClientError):
            await edge.exchange_token('abc123')

        await edge.disconnect()

    @async_test
    async def test_non_json_response_is_error(self) -> None:
        self.route('POST', '/mID/v1/oauth/token',
                   lambda _: httpx.Response(200, text='<html>'))
        edge = self.build()
        await edge.connect()

        with self.assertRaises(EdgeClientError):
            await edge.exchange_token('abc123')

        await edge.disconnect()


    @async_test
    async def test_wrong_typed_fields_are_error(self) -> None:
        for body in ({'access_token': 12345},
                     {'access_token': 'xyz', 'expires_in': 'soon'}):
            with self.subTest(body=body):
                self.route('POST', '/mID/v1/oauth/token',
                           lambda _, body=body: httpx.Response(200, json=body))
                edge = self.build()
                await edge.connect()

                with self.assertRaises(EdgeClientError):
                    await edge.exchange_token('abc123')

                await edge.disconnect()


class TestProvisionService(EdgeTestCase):
    """Tests for HttpEdgeClient.provision_service."""

    def setUp(self) -> None:
        super().setUp()
        self._tmp = tempfile.TemporaryDirectory()
        self.artifact = Path(self._tmp.name) / 'randomnumber_v1.tar'
        self.artifact.write_bytes(b'tar bytes')

    def tearDown(self) -> None:
        self._tmp.cleanup()

    @async_test
    async def test_uploads_image_then_starts_container(self) -> None:
        self.route('POST', '/mcm/v1/images',
                   lambda _: httpx.Response(201, json={'id': 'img'}))
        self.route('POST', '/mcm/v1/containers',
                   lambda _: httpx.Response(201, json={
                       'name': 'randomnumber-v1',
                       'image': 'randomnumber-v1',
                   }))
        edge = self.build()
        await edge.connect()

        handle = await edge.provision_service(
            TOKEN, RANDOM_NUMBER_SERVICE, self.artifact)
        await edge.disconnect()

        self.assertEqual(handle, RANDOM_NUMBER_HANDLE)

        upload, create = self.requests
        self.assertEqual(upload.headers['authorization'], 'Bearer xyz')
        self.assertIn(b'tar bytes', upload.content)
        self.assertEqual(create.headers['authorization'], 'Bearer xyz')
        self.assertEqual(json.loads(create.content), {
            'name': 'randomnumber-v1',
            'image': 'randomnumber-v1',
            'env': {'MCM.BASE_API_PATH': '/randomnumber/v1'},
        })

    @async_test
    async def test_uses_base_path_reported_by_runtime(self) -> None:
        self.route('POST', '/mcm/v1/images', lambda _: httpx.Response(201))
        self.route('POST', '/mcm/v1/containers',
                   lambda _: httpx.Response(201, json={
                       'name': 'randomnumber-v1',
                       'env': {'MCM.BASE_API_PATH': '/client-1/randomnumber/v1'},
                   }))
        edge = self.build()
        await edge.connect()

        handle = await edge.provision_service(
            TOKEN, RANDOM_NUMBER_SERVICE, self.artifact)
        await edge.disconnect()

        self.assertEqual(handle.base_path, '/client-1/randomnumber/v1')

    @async_test
    async def test_unreadable_artifact_is_error(self) -> None:
        edge = self.build()
        await edge.connect()

        with self.assertRaises(EdgeClientError):
            await edge.provision_service(
                TOKEN, RANDOM_NUMBER_SERVICE, Path(self._tmp.name) / 'nope')

        await edge.disconnect()
        self.assertEqual(self.requests, [])

    @async_test
    async def test_rejected_upload_is_error(self) -> None:
        self.route('POST', '/mcm/v1/images', lambda _: httpx.Response(500))
        edge = self.build()
        await edge.connect()

        with self.assertRaises(EdgeClientError):
            await edge.provision_service(
                TOKEN, RANDOM_NUMBER_SERVICE, self.artifact)

        await edge.disconnect()
        self.assertEqual(len(self.requests), 1)


    @async_test
    async def test_non_object_env_in_response_is_error(self) -> None:
        self.route('POST', '/mcm/v1/images', lambda _: httpx.Response(201))
        self.route('POST', '/mcm/v1/containers',
                   lambda _: httpx.Response(201, json={
                       'name': 'randomnumber-v1',
                       'env': ['MCM.BASE_API_PATH=/randomnumber/v1'],
                   }))
        edge = self.build()
        await edge.connect()

        with self.assertRaises(EdgeClientError):
            await edge.provision_service(
                TOKEN, RANDOM_NUMBER_SERVICE, self.artifact)

        await edge.disconnect()


class TestLocateService(EdgeTestCase):
    """Tests for HttpEdgeClient.locate_service."""

    @async_test
    async def test_finds_container_by_name(self) -> None:
        self.route('GET', '/mcm/v1/containers',
                   lambda _: httpx.Response(200, json={'data': [
                       {'name': 'other', 'basePath': '/other/v1'},
                       {'name': 'randomnumber-v1',
                        'basePath': '/randomnumber/v1'},
                   ]}))
        edge = self.build()
        await edge.connect()

        handle = await edge.locate_service(TOKEN, 'randomnumber-v1')
        await edge.disconnect()

        self.assertEqual(handle, ServiceHandle(
            container_name='randomnumber-v1', base_path='/randomnumber/v1'))
        self.assertEqual(self.requests[0].headers['authorization'],
                         'Bearer xyz')

    @async_test
    async def test_missing_container_is_none(self) -> None:
        self.route('GET', '/mcm/v1/containers',
                   lambda _: httpx.Response(200, json={'data': []}))
        edge = self.build()
        await edge.connect()

        handle = await edge.locate_service(TOKEN, 'randomnumber-v1')
        await edge.disconnect()

        self.assertIsNone(handle)

    @async_test
    async def test_non_string_base_path_is_error(self) -> None:
        self.route('GET', '/mcm/v1/containers',
                   lambda _: httpx.Response(200, json={'data': [
                       {'name': 'randomnumber-v1', 'basePath': 42},
                   ]}))
        edge = self.build()
        await edge.connect()

        with self.assertRaises(EdgeClientError):
            await edge.locate_service(TOKEN, 'randomnumber-v1')

        await edge.disconnect()

    @async_test
    async def test_non_array_container_list_is_error(self) -> None:
        self.route('GET', '/mcm/v1/containers',
                   lambda _: httpx.Response(200, json={'data': 7}))
        edge = self.build()
        await edge.connect()

        with self.assertRaises(EdgeClientError):
            await edge.locate_service(TOKEN, 'randomnumber-v1')

        await edge.disconnect()


class TestMalformedResponsesInStages(EdgeTestCase):
    """Malformed runtime responses surface as the stage's own errors."""

    def setUp(self) -> None:
        super().setUp()
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    @async_test
    async def test_wrong_typed_token_response_is_exchange_failed(self) -> None:
        credential = self.directory / 'Developer-ID-Token'
        credential.write_text('abc123\n')
        self.route('POST', '/mID/v1/oauth/token', lambda _: httpx.Response(
            200, json={'access_token': 12345, 'expires_in': 'soon'}))
        edge = self.build()
        await edge.connect()

        with self.assertRaises(ExchangeFailed) as caught:
            await Authenticator(edge, credential).authenticate()

        await edge.disconnect()
        self.assertIsInstance(caught.exception.cause, EdgeClientError)

    @async_test
    async def test_non_object_env_on_discover_is_deploy_failed(self) -> None:
        self.route('GET', '/mcm/v1/containers',
                   lambda _: httpx.Response(200, json=[
                       {'name': 'randomnumber-v1', 'env': 'oops'},
                   ]))
        edge = self.build()
        await edge.connect()
        deployer = Deployer(
            edge, RANDOM_NUMBER_SERVICE, self.directory / 'unused.tar',
            policy=DeployPolicy.DISCOVER)

        with self.assertRaises(DeployFailed):
            await deployer.run(TOKEN)

        await edge.disconnect()

    @async_test
    async def test_non_string_base_path_on_deploy_is_deploy_failed(
        self
    ) -> None:
        artifact = self.directory / 'randomnumber_v1.tar'
        artifact.write_bytes(b'tar bytes')
        self.route('POST', '/mcm/v1/images', lambda _: httpx.Response(201))
        self.route('POST', '/mcm/v1/containers',
                   lambda _: httpx.Response(201, json={
                       'name': 'randomnumber-v1',
                       'basePath': ['/randomnumber/v1'],
                   }))
        edge = self.build()
        await edge.connect()

        with self.assertRaises(DeployFailed):
            await Deployer(edge, RANDOM_NUMBER_SERVICE, artifact).run(TOKEN)

        await edge.disconnect()


if __name__ == '__main__':
    unittest.main()
