import ssl
import asyncio
from typing import List, Tuple
from urllib.parse import urlencode

import h11

from hexserve import logger
from hexserve.errors import ConfigurationError, UpstreamTimeout, UpstreamConnectionFailure
from hexserve.server.pipeline import RequestHandler
from hexserve.server.messages import HTTPRequest, ServerResponse
from hexserve.client.target import HTTPTarget
from hexserve.client.transport import HTTPClientTransport
from hexserve.client.messages import HTTPResponse
from hexserve.proxy.validators import BASE_PATH_PARAM, validate_proxy_request

CREDENTIAL_HEADER = 'X-Riot-Token'
DEFAULT_USER_AGENT = 'hexserve-riot-proxy'
DEFAULT_ACCEPT = 'application/json'

# connection management headers are never relayed in either direction
HOP_BY_HOP_HEADERS = {
	'connection',
	'keep-alive',
	'proxy-connection',
	'transfer-encoding',
	'te',
	'trailer',
	'upgrade',
}

# network and protocol level failures talking to upstream
UPSTREAM_ERRORS = (OSError, h11.ProtocolError)


class UpstreamRequest:
	"""Everything needed to send one proxied request upstream"""
	def __init__(self, base_url:str, path:str, query:List[Tuple[str, str]], method:str, headers:List[Tuple[str, str]], body:bytes):
		self.base_url = base_url
		self.path = path
		self.query = query
		self.method = method
		self.headers = headers
		self.body = body

	@property
	def target(self):
		"""Request target as sent on the wire: base path + inbound path + query"""
		return build_target(HTTPTarget.from_url(self.base_url).get_base_path(), self.path, self.query)

	@property
	def url(self):
		return self.base_url.rstrip('/') + build_target('', self.path, self.query)


def build_target(base_path:str, path:str, query:List[Tuple[str, str]]) -> str:
	if path == '' or path.startswith('/') is False:
		path = '/' + path
	target = base_path + path
	if len(query) > 0:
		target += '?' + urlencode(query)
	return target

def forwarded_query(request:HTTPRequest) -> List[Tuple[str, str]]:
	"""Query parameters of the inbound request without the proxy control parameter"""
	return [(k, v) for k, v in request.query_items() if k != BASE_PATH_PARAM]

def upstream_headers(request:HTTPRequest, api_key:str) -> List[Tuple[str, str]]:
	"""
	Only an explicit set of headers is sent upstream.
	The credential always comes from configuration, a client supplied one is dropped.
	"""
	headers = [
		(CREDENTIAL_HEADER, api_key),
		('User-Agent', request.get_header('user-agent') or DEFAULT_USER_AGENT),
		('Accept', request.get_header('accept') or DEFAULT_ACCEPT),
	]
	content_type = request.get_header('content-type')
	if content_type:
		headers.append(('Content-Type', content_type))
	return headers

def relayed_headers(response:HTTPResponse) -> List[Tuple[str, str]]:
	return [(k, v) for k, v in response.raw_headers if k.lower() not in HOP_BY_HOP_HEADERS]


class ProxyForwarder:
	"""
	Relays requests to the upstream API, injecting the credential header.
	The whole exchange, body included, has to finish within `timeout` seconds.
	"""
	def __init__(self, api_key:str, default_base_url:str, timeout:float = 30, ssl_ctx:ssl.SSLContext = None):
		self.api_key = api_key
		self.default_base_url = default_base_url
		self.timeout = timeout
		self.ssl_ctx = ssl_ctx

	def build_request(self, request:HTTPRequest, path:str, base_url:str = None) -> UpstreamRequest:
		if base_url is None:
			base_url = self.default_base_url
		return UpstreamRequest(
			base_url,
			path,
			forwarded_query(request),
			request.method,
			upstream_headers(request, self.api_key),
			request.body,
		)

	async def forward(self, request:HTTPRequest, path:str, base_url:str = None) -> ServerResponse:
		"""
		Sends the request upstream and returns a response whose body streams the upstream body.
		base_url must already be validated, None selects the configured default.
		"""
		if not self.api_key:
			logger.warning('Riot API proxy request without configured API key')
			raise ConfigurationError('Riot API key not configured')

		upstream = self.build_request(request, path, base_url)
		logger.info('Proxying request', extra={'context': {
			'method' : upstream.method,
			'targetUrl' : upstream.url,
		}})

		loop = asyncio.get_running_loop()
		deadline = loop.time() + self.timeout
		target = HTTPTarget.from_url(upstream.base_url, timeout=self.timeout, ssl_ctx=self.ssl_ctx)
		transport = HTTPClientTransport(target)
		try:
			await asyncio.wait_for(transport.connect(), timeout=deadline - loop.time())
			response = await asyncio.wait_for(
				transport.request(upstream.method, upstream.target, headers=upstream.headers, data=upstream.body),
				timeout = deadline - loop.time(),
			)
		except asyncio.TimeoutError:
			await transport.disconnect()
			logger.error('Upstream request timed out', extra={'context': {'targetUrl' : upstream.url, 'timeout' : self.timeout}})
			raise UpstreamTimeout()
		except UPSTREAM_ERRORS as e:
			await transport.disconnect()
			logger.error('Upstream request failed', extra={'context': {'targetUrl' : upstream.url, 'reason' : repr(e)}})
			raise UpstreamConnectionFailure(e)
		except BaseException:
			await transport.disconnect()
			raise

		return ServerResponse(
			response.status,
			relayed_headers(response),
			stream = self.relay(transport, response, deadline),
		)

	async def relay(self, transport:HTTPClientTransport, response:HTTPResponse, deadline:float):
		"""Yields upstream body chunks as they arrive, the upstream connection is closed when this ends"""
		loop = asyncio.get_running_loop()
		chunks = response.stream_data()
		try:
			while True:
				remaining = deadline - loop.time()
				if remaining <= 0:
					raise UpstreamTimeout()
				try:
					chunk = await asyncio.wait_for(chunks.__anext__(), timeout=remaining)
				except StopAsyncIteration:
					break
				except asyncio.TimeoutError:
					raise UpstreamTimeout()
				yield chunk
		finally:
			await transport.disconnect()


class ProxyHandler(RequestHandler):
	"""Mounts the forwarder under proxy_prefix, every method is relayed"""
	def __init__(self, forwarder:ProxyForwarder, proxy_prefix:str):
		self.forwarder = forwarder
		self.proxy_prefix = proxy_prefix

	async def handle(self, request:HTTPRequest) -> ServerResponse:
		path = request.mounted_path(self.proxy_prefix)
		if path is None:
			return None
		base_url = validate_proxy_request(request)
		return await self.forwarder.forward(request, path, base_url)
