import json
import socket
import asyncio
import unittest

from hexserve.errors import ConfigurationError, UpstreamTimeout, UpstreamConnectionFailure, ValidationError
from hexserve.server.messages import HTTPRequest
from hexserve.proxy.forwarder import ProxyForwarder, ProxyHandler, build_target, forwarded_query
from hexserve.test.upstream import FakeUpstream, respond_with, never_respond

API_KEY = 'RGAPI-00000000-test-secret'

OK_RESPONSE = b'HTTP/1.1 201 Created\r\n' \
	b'Content-Type: application/json\r\n' \
	b'X-App-Rate-Limit: 20:1,100:120\r\n' \
	b'Content-Length: 11\r\n' \
	b'Connection: close\r\n' \
	b'\r\n' \
	b'{"ok":true}'

CHUNKED_RESPONSE = b'HTTP/1.1 200 OK\r\n' \
	b'Content-Type: application/json\r\n' \
	b'Transfer-Encoding: chunked\r\n' \
	b'\r\n' \
	b'5\r\n[1,2,\r\n' \
	b'2\r\n3]\r\n' \
	b'0\r\n\r\n'

COOKIE_RESPONSE = b'HTTP/1.1 200 OK\r\n' \
	b'Set-Cookie: a=1\r\n' \
	b'Set-Cookie: b=2\r\n' \
	b'Content-Length: 2\r\n' \
	b'Connection: close\r\n' \
	b'\r\n' \
	b'{}'


def closed_port():
	s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
	s.bind(('127.0.0.1', 0))
	port = s.getsockname()[1]
	s.close()
	return port


class TestTargetBuilding(unittest.TestCase):
	def test_build_target(self):
		self.assertEqual(build_target('', '/lol/status', []), '/lol/status')
		self.assertEqual(build_target('/base', '/x', [('a', '1'), ('b', 'c d')]), '/base/x?a=1&b=c+d')
		self.assertEqual(build_target('', '', []), '/')

	def test_control_parameter_is_not_forwarded(self):
		req = HTTPRequest('GET', '/riot-api/x?count=5&requestBasePath=https://na1.api.riotgames.com&start=0')
		self.assertEqual(forwarded_query(req), [('count', '5'), ('start', '0')])

	def test_override_selects_base(self):
		forwarder = ProxyForwarder(API_KEY, 'https://euw1.api.riotgames.com')
		req = HTTPRequest('GET', '/riot-api/lol/status/v4/platform-data')
		self.assertEqual(forwarder.build_request(req, '/lol/status/v4/platform-data').url, 'https://euw1.api.riotgames.com/lol/status/v4/platform-data')
		upstream = forwarder.build_request(req, '/lol/status/v4/platform-data', 'https://na1.api.riotgames.com/')
		self.assertEqual(upstream.url, 'https://na1.api.riotgames.com/lol/status/v4/platform-data')
		self.assertEqual(upstream.target, '/lol/status/v4/platform-data')


class TestForwarder(unittest.IsolatedAsyncioTestCase):
	async def start_upstream(self, responder):
		upstream = await FakeUpstream(responder).start()
		self.addCleanup(upstream.stop)
		return upstream

	async def test_request_and_response_relay(self):
		upstream = await self.start_upstream(respond_with(OK_RESPONSE))
		forwarder = ProxyForwarder(API_KEY, upstream.url)
		req = HTTPRequest('GET', '/riot-api/lol/status/v4/platform-data?count=5&requestBasePath=https://na1.api.riotgames.com', [
			('x-riot-token', 'client-supplied'),
			('cookie', 'session=1'),
			('user-agent', 'unittest/1.0'),
		])

		res = await forwarder.forward(req, '/lol/status/v4/platform-data')
		self.assertEqual(res.status_code, 201)
		self.assertEqual(await res.read(), b'{"ok":true}')
		self.assertEqual(res.get_header('x-app-rate-limit'), '20:1,100:120')
		self.assertEqual(res.get_header('content-type'), 'application/json')
		self.assertIsNone(res.get_header('connection'))

		method, target, headers, body = upstream.requests[0]
		self.assertEqual(method, 'GET')
		self.assertEqual(target, '/lol/status/v4/platform-data?count=5')
		self.assertEqual(headers['x-riot-token'], [API_KEY])
		self.assertEqual(headers['user-agent'], ['unittest/1.0'])
		self.assertEqual(headers['accept'], ['application/json'])
		self.assertNotIn('cookie', headers)
		self.assertNotIn('content-type', headers)
		self.assertEqual(body, b'')

	async def test_body_is_forwarded(self):
		upstream = await self.start_upstream(respond_with(OK_RESPONSE))
		forwarder = ProxyForwarder(API_KEY, upstream.url)
		payload = json.dumps({'summoner' : 'x'}).encode()
		req = HTTPRequest('POST', '/riot-api/lol/x', [('content-type', 'application/json'), ('accept', 'text/plain')], body=payload)

		res = await forwarder.forward(req, '/lol/x')
		await res.read()

		method, _, headers, body = upstream.requests[0]
		self.assertEqual(method, 'POST')
		self.assertEqual(body, payload)
		self.assertEqual(headers['content-type'], ['application/json'])
		self.assertEqual(headers['accept'], ['text/plain'])

	async def test_chunked_body_streams(self):
		upstream = await self.start_upstream(respond_with(CHUNKED_RESPONSE))
		forwarder = ProxyForwarder(API_KEY, upstream.url)

		res = await forwarder.forward(HTTPRequest('GET', '/riot-api/list'), '/list')
		self.assertEqual(res.status_code, 200)
		self.assertIsNone(res.get_header('transfer-encoding'))
		self.assertIsNotNone(res.stream)
		chunks = []
		async for chunk in res.iter_body():
			chunks.append(chunk)
		self.assertEqual(b''.join(chunks), b'[1,2,3]')

	async def test_repeated_response_headers_are_all_relayed(self):
		upstream = await self.start_upstream(respond_with(COOKIE_RESPONSE))
		forwarder = ProxyForwarder(API_KEY, upstream.url)

		res = await forwarder.forward(HTTPRequest('GET', '/riot-api/x'), '/x')
		self.assertEqual(await res.read(), b'{}')
		self.assertEqual([v for k, v in res.headers if k.lower() == 'set-cookie'], ['a=1', 'b=2'])
		self.assertEqual([v for k, v in res.headers if k.lower() == 'content-length'], ['2'])

	async def test_credential_is_never_logged(self):
		upstream = await self.start_upstream(respond_with(OK_RESPONSE))
		forwarder = ProxyForwarder(API_KEY, upstream.url)
		with self.assertLogs('hexserve', level='DEBUG') as cm:
			res = await forwarder.forward(HTTPRequest('GET', '/riot-api/x'), '/x')
			await res.read()
		for record in cm.records:
			self.assertNotIn(API_KEY, json.dumps(record.__dict__, default=str))

	async def test_timeout_before_headers(self):
		upstream = await self.start_upstream(never_respond)
		forwarder = ProxyForwarder(API_KEY, upstream.url, timeout=0.3)
		with self.assertLogs('hexserve', level='ERROR'):
			with self.assertRaises(UpstreamTimeout) as ctx:
				await forwarder.forward(HTTPRequest('GET', '/riot-api/slow'), '/slow')
		self.assertEqual(ctx.exception.status_code, 504)
		self.assertEqual(ctx.exception.to_dict(), {'error' : 'Gateway Timeout', 'message' : 'Riot API request timed out'})
		# upstream sees the connection go away
		await asyncio.wait_for(upstream.closed_evt.wait(), timeout=5)

	async def test_timeout_while_streaming(self):
		head = b'HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n3\r\nabc\r\n'
		async def stall(reader, writer):
			writer.write(head)
			await writer.drain()
			await reader.read()

		upstream = await self.start_upstream(stall)
		forwarder = ProxyForwarder(API_KEY, upstream.url, timeout=0.5)
		res = await forwarder.forward(HTTPRequest('GET', '/riot-api/stall'), '/stall')
		self.assertEqual(res.status_code, 200)
		received = b''
		with self.assertRaises(UpstreamTimeout):
			async for chunk in res.iter_body():
				received += chunk
		await res.aclose()
		self.assertEqual(received, b'abc')
		await asyncio.wait_for(upstream.closed_evt.wait(), timeout=5)

	async def test_connection_refused(self):
		forwarder = ProxyForwarder(API_KEY, 'http://127.0.0.1:%s' % closed_port(), timeout=5)
		with self.assertLogs('hexserve', level='ERROR'):
			with self.assertRaises(UpstreamConnectionFailure) as ctx:
				await forwarder.forward(HTTPRequest('GET', '/riot-api/x'), '/x')
		self.assertEqual(ctx.exception.status_code, 502)
		self.assertEqual(ctx.exception.to_dict(), {'error' : 'Bad Gateway', 'message' : 'Failed to connect to Riot API'})

	async def test_upstream_hangs_up_without_response(self):
		async def hang_up(reader, writer):
			return
		upstream = await self.start_upstream(hang_up)
		forwarder = ProxyForwarder(API_KEY, upstream.url, timeout=5)
		with self.assertLogs('hexserve', level='ERROR'):
			with self.assertRaises(UpstreamConnectionFailure):
				await forwarder.forward(HTTPRequest('GET', '/riot-api/x'), '/x')

	async def test_missing_key_short_circuits(self):
		upstream = await self.start_upstream(respond_with(OK_RESPONSE))
		forwarder = ProxyForwarder('', upstream.url)
		with self.assertLogs('hexserve', level='WARNING'):
			with self.assertRaises(ConfigurationError) as ctx:
				await forwarder.forward(HTTPRequest('GET', '/riot-api/x'), '/x')
		self.assertEqual(ctx.exception.to_dict(), {'error' : 'Configuration Error', 'message' : 'Riot API key not configured'})
		self.assertEqual(upstream.connections, 0)


class TestProxyHandler(unittest.IsolatedAsyncioTestCase):
	async def asyncSetUp(self):
		self.upstream = await FakeUpstream(respond_with(OK_RESPONSE)).start()
		self.handler = ProxyHandler(ProxyForwarder(API_KEY, self.upstream.url), '/riot-api')

	async def asyncTearDown(self):
		self.upstream.stop()

	async def test_not_mounted(self):
		self.assertIsNone(await self.handler.handle(HTTPRequest('GET', '/riot-apix/x')))
		self.assertIsNone(await self.handler.handle(HTTPRequest('GET', '/latest/x')))

	async def test_forwards_sub_path(self):
		res = await self.handler.handle(HTTPRequest('DELETE', '/riot-api/lol/thing/1'))
		await res.read()
		method, target, _, _ = self.upstream.requests[0]
		self.assertEqual(method, 'DELETE')
		self.assertEqual(target, '/lol/thing/1')

	async def test_invalid_override_never_connects(self):
		with self.assertLogs('hexserve', level='WARNING'):
			with self.assertRaises(ValidationError):
				await self.handler.handle(HTTPRequest('GET', '/riot-api/x?requestBasePath=https://evil.com'))
		self.assertEqual(self.upstream.connections, 0)


if __name__ == '__main__':
	unittest.main()
